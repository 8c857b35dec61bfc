"""YAML config loader — reads kachisuji.yml into AppConfig."""

import os
from pathlib import Path

import yaml

from kachisuji.schemas.config import AppConfig

DATABASE_URL_ENV = "KACHISUJI_DATABASE_URL"


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load and validate a config file.

    With ``path=None`` the defaults are returned. Raises
    ``FileNotFoundError`` if the path doesn't exist and
    ``pydantic.ValidationError`` if the YAML content is invalid.
    ``KACHISUJI_DATABASE_URL`` overrides ``database_url`` either way.
    """
    raw: dict = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must be a YAML mapping, got {type(loaded).__name__}")
        raw = loaded

    # YAML loads lists with only commented-out items as None; normalize to empty list.
    if "web_sources" in raw and raw["web_sources"] is None:
        raw["web_sources"] = []
    if raw.get("rag") is None:
        raw.pop("rag", None)

    if env_url := os.environ.get(DATABASE_URL_ENV):
        raw["database_url"] = env_url

    return AppConfig(**raw)
