"""Pydantic models for the SWOT agent."""

from pydantic import BaseModel, field_validator


class SwotItem(BaseModel):
    text: str
    source: str = ""

    @field_validator("source", mode="before")
    @classmethod
    def coerce_none_to_empty(cls, v: object) -> object:
        return "" if v is None else v


class Swot(BaseModel):
    strengths: list[SwotItem] = []
    weaknesses: list[SwotItem] = []
    opportunities: list[SwotItem] = []
    threats: list[SwotItem] = []

    @field_validator("strengths", "weaknesses", "opportunities", "threats", mode="before")
    @classmethod
    def accept_plain_strings(cls, v: object) -> object:
        # Models sometimes answer ["a", "b"] instead of [{"text": "a"}, ...]
        if isinstance(v, list):
            return [{"text": item} if isinstance(item, str) else item for item in v]
        return [] if v is None else v


class SwotResult(BaseModel):
    swot: Swot
    summary: str = ""


class ExternalSearchResult(BaseModel):
    title: str = ""
    content: str = ""


class ExternalData(BaseModel):
    """One web-search answer supplied by the caller, keyed by topic."""

    answer: str = ""
    results: list[ExternalSearchResult] = []


class SwotRequest(BaseModel):
    industry: str = ""
    company_context: str = ""
    core_info: str = ""
    external_data: dict[str, ExternalData] = {}
