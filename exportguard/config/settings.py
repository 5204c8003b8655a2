"""Validator configuration loading and validation."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterable, Literal

import yaml
from pydantic import Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..models import Policy

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("/etc/exportguard/exportguard.yaml"),
    Path("/etc/exportguard/exportguard.yml"),
    Path("./config/exportguard.yaml"),
    Path("./config/exportguard.yml"),
)


class ExportGuardSettings(BaseSettings):
    """Validated settings for the exportability check."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="EXPORTGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    on_reference: Policy = Field(
        default=Policy.IGNORE,
        description="Reference-on-detection policy applied before dispatch (ignore, warn, error).",
    )
    registry_plugins: list[str] = Field(
        default_factory=list,
        description="'module:attr' hooks called with the classification registry at startup.",
    )
    max_nodes: PositiveInt | None = Field(
        default=None,
        description="Optional bound on distinct nodes inspected per warn-policy validation.",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for the exportguard loggers.",
    )

    @field_validator("on_reference", mode="before")
    @classmethod
    def _normalize_policy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Policy.parse(value)
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    config_path: Path | None = Field(
        default=None,
        description="Resolved path to the on-disk config that seeded the settings.",
        exclude=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[ExportGuardSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            cls._yaml_settings_source,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @staticmethod
    def _yaml_settings_source(settings_cls: type[ExportGuardSettings] | None = None) -> Dict[str, Any]:
        candidates: Iterable[Path] = ExportGuardSettings._resolve_candidate_paths()

        for path in candidates:
            data = ExportGuardSettings._load_file(path)
            if data is not None:
                data.setdefault("config_path", path)
                return data
        return {}

    @staticmethod
    def _resolve_candidate_paths() -> Iterable[Path]:
        explicit = os.getenv("EXPORTGUARD_CONFIG_FILE")
        if explicit:
            yield Path(explicit).expanduser()
        yield from DEFAULT_CONFIG_LOCATIONS

    @staticmethod
    def _load_file(path: Path) -> Dict[str, Any] | None:
        if not path.is_file():
            return None
        if path.suffix.lower() not in {".yaml", ".yml"}:
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                raw = yaml.safe_load(handle)
        except OSError as exc:
            raise RuntimeError(f"Failed to read exportguard config file {path}") from exc
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid exportguard config file {path}") from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"Exportguard config file {path} must contain a mapping at top level.")
        return raw


@lru_cache()
def get_settings() -> ExportGuardSettings:
    """Return memoized exportguard settings."""

    return ExportGuardSettings()
