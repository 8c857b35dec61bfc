"""
Shared FastAPI dependencies
"""
from typing import Optional

from fastapi import Header, Request

from kachisuji.schemas.config import AppConfig
from kachisuji.shared.llm_client import LLMClient


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_client(request: Request) -> LLMClient:
    return request.app.state.client


def get_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
) -> str:
    """No login: the caller names itself, or is the configured local user."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return request.app.state.config.user_id
