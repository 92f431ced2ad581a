"""Analysis settings loading."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class AnalysisSettings(BaseModel):
    """Tunables for batch analysis and exports."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_concurrency: int = Field(default=4, ge=1)
    include_raw: bool = True
    csv_list_separator: str = Field(default="|", min_length=1)
    json_indent: int = Field(default=2, ge=0)
    max_upload_mb: int = Field(default=50, ge=1)

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


def default_settings_path() -> Path:
    return Path(__file__).with_name("settings.yaml")


def load_settings(path: Path | None = None) -> AnalysisSettings:
    """Load and validate analysis settings from YAML.

    An empty file yields the defaults.
    """

    settings_path = path or default_settings_path()

    try:
        raw = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Settings file not found: {settings_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in settings file: {settings_path}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Settings file must contain a mapping: {settings_path}")

    try:
        return AnalysisSettings.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings schema: {settings_path}") from exc
