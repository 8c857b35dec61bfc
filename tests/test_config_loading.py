"""Tests for YAML config loading and the AppConfig schema."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from kachisuji.config import DATABASE_URL_ENV, load_config
from kachisuji.schemas.config import AppConfig, RagSettings


class TestLoadConfig:
    def test_loads_valid_config(self, tmp_config: Path) -> None:
        cfg = load_config(tmp_config)
        assert isinstance(cfg, AppConfig)
        assert cfg.company_name == "テスト海運"
        assert cfg.industry == "海運"
        assert cfg.database_url.startswith("sqlite:///")

    def test_defaults_without_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        cfg = load_config(None)
        assert cfg.database_url == "sqlite:///./kachisuji.db"
        assert cfg.finder_id == "winning-strategy"
        assert cfg.user_id == "local"
        assert cfg.web_sources == []
        assert cfg.rag.max_chunk_chars == 1500

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yml")

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        cfg = tmp_path / "bad.yml"
        cfg.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="YAML mapping"):
            load_config(cfg)

    def test_unknown_finder_rejected(self, tmp_path: Path) -> None:
        cfg = tmp_path / "bad.yml"
        cfg.write_text('finder_id: "no-such-finder"\n')
        with pytest.raises(ValidationError):
            load_config(cfg)

    def test_empty_web_sources_normalized(self, tmp_path: Path) -> None:
        cfg = tmp_path / "c.yml"
        cfg.write_text("web_sources:\n  # - name: x\nrag:\n")
        loaded = load_config(cfg)
        assert loaded.web_sources == []
        assert loaded.rag == RagSettings()

    def test_web_sources_parsed(self, tmp_path: Path) -> None:
        cfg = tmp_path / "c.yml"
        cfg.write_text(
            "web_sources:\n"
            '  - name: "IR"\n'
            '    url: "https://example.com/ir.pdf"\n'
        )
        loaded = load_config(cfg)
        assert loaded.web_sources[0].name == "IR"

    def test_env_overrides_database_url(self, tmp_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(DATABASE_URL_ENV, "sqlite://")
        assert load_config(tmp_config).database_url == "sqlite://"


class TestRagSettings:
    def test_min_must_be_below_max(self) -> None:
        with pytest.raises(ValidationError):
            RagSettings(min_chunk_chars=500, max_chunk_chars=500)

    def test_overlap_must_be_below_max(self) -> None:
        with pytest.raises(ValidationError):
            RagSettings(overlap_chars=2000)
