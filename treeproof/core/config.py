"""Application configuration (Pydantic v2). Load from treeproof_config.yml with optional env override."""

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, field_validator

from treeproof.verification.policy import (
    DEFAULT_POSITIVE_KEYWORDS,
    DEFAULT_STRONG_NEGATIVE_KEYWORDS,
    KeywordPolicy,
)


DEFAULT_DATABASE_URL = "postgresql+psycopg2://localhost/treeproof"
DEFAULT_CONFIG_ENV_VAR = "TREEPROOF_CONFIG"
DEFAULT_CONFIG_FILENAME = "treeproof_config.yml"
DEFAULT_VISION_ENDPOINT = "https://vision.googleapis.com/v1"
VISION_API_KEY_ENV = "GOOGLE_VISION_API_KEY"


class Settings(BaseModel):
    """
    Service config loaded from YAML.

    database_url may be overridden by the DATABASE_URL environment variable when loading the default
    config (but not when an explicit config_path is provided). vision_api_key is always overridden by
    GOOGLE_VISION_API_KEY when that variable is set.
    """

    model_config = {"extra": "ignore"}

    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    forensics_dir: str = "logs/forensics"

    labeler: str = "google-vision"
    vision_endpoint: str = DEFAULT_VISION_ENDPOINT
    vision_api_key: str | None = None
    vision_max_results: int = 10
    label_timeout_seconds: float = 10.0

    positive_keywords: list[str] = list(DEFAULT_POSITIVE_KEYWORDS)
    strong_negative_keywords: list[str] = list(DEFAULT_STRONG_NEGATIVE_KEYWORDS)

    @field_validator("vision_api_key", mode="before")
    @classmethod
    def blank_key_is_none(cls, v: Any) -> str | None:
        if v is not None and str(v).strip() != "":
            return str(v).strip()
        return None

    @field_validator("label_timeout_seconds")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("label_timeout_seconds must be positive")
        return v

    def keyword_policy(self) -> KeywordPolicy:
        """Build the immutable keyword policy. Raises ValueError if the two lists overlap."""
        return KeywordPolicy.from_lists(self.positive_keywords, self.strong_negative_keywords)


_config: Settings | None = None


class ConfigLoader:
    """
    Helper responsible for loading Settings from YAML and environment.

    - load_from_yaml(path, apply_env_override): read a YAML file and optionally apply env overrides.
    - load_default(): resolve the default config path from TREEPROOF_CONFIG / treeproof_config.yml and
      apply DATABASE_URL / GOOGLE_VISION_API_KEY overrides when present.
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = env if env is not None else os.environ

    def _apply_env_overrides(self, data: dict[str, Any], *, database_url: bool) -> dict[str, Any]:
        if database_url and self._env.get("DATABASE_URL"):
            data["database_url"] = self._env["DATABASE_URL"]
        # Credentials always come from the environment when set.
        if self._env.get(VISION_API_KEY_ENV):
            data["vision_api_key"] = self._env[VISION_API_KEY_ENV]
        return data

    def load_from_yaml(self, path: Path, apply_env_override: bool) -> Settings:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f)
        if not data:
            data = {}
        data = self._apply_env_overrides(data, database_url=apply_env_override)
        settings = Settings.model_validate(data)
        # Fail at load time rather than on the first verification.
        settings.keyword_policy()
        return settings

    def load_default(self) -> Settings:
        """Load the default Settings, using TREEPROOF_CONFIG or treeproof_config.yml."""
        path_str = self._env.get(DEFAULT_CONFIG_ENV_VAR) or DEFAULT_CONFIG_FILENAME
        path = Path(path_str)
        if path.exists():
            return self.load_from_yaml(path, apply_env_override=True)
        return Settings.model_validate(self._apply_env_overrides({}, database_url=True))


_loader = ConfigLoader()


def get_config(config_path: str | Path | None = None) -> Settings:
    """
    Return singleton config.

    - If config_path is given, load from it (without the DATABASE_URL override) and update the cache.
    - Otherwise, return the cached config if available, or load via ConfigLoader.load_default().
    """
    global _config
    if config_path is not None:
        _config = _loader.load_from_yaml(Path(config_path), apply_env_override=False)
        return _config
    if _config is not None:
        return _config
    _config = _loader.load_default()
    return _config


def reset_config() -> None:
    """Clear cached config (for tests)."""
    global _config
    _config = None
