"""Settings: defaults, then an optional JSON config file, then environment variables.

Environment (a .env file at the repo root is loaded first):

  SITOUT_API_KEYS          comma-separated credentials
  SITOUT_API_KEY_1..N      additional credentials, numbered
  SITOUT_PROVIDER_FORMAT   gemini | openai | echo
  SITOUT_PROVIDER_URL      provider base URL
  SITOUT_MODEL             model identifier
  SITOUT_CONFIG            path to a JSON file with any Settings field
  SITOUT_PERSONAS          path to a JSON persona roster

Every other Settings field can be set as SITOUT_<FIELD_NAME_UPPERCASE>.
The JSON file never holds credentials; `public()` never returns them.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from sitout.llm import ProviderFormat

logger = logging.getLogger(__name__)

ROOT = Path(__file__).parent.parent

_NUMBERED_KEY = re.compile(r"^SITOUT_API_KEY_(\d+)$")


class Settings(BaseModel):
    api_keys: list[str] = Field(default_factory=list)

    provider_format: ProviderFormat = "gemini"
    provider_url: str = "https://generativelanguage.googleapis.com"
    model: str = "gemini-1.5-flash"
    request_timeout: float = 30.0
    temperature: float = 0.8
    opening_temperature: float = 0.9

    history_limit: int = Field(10, ge=1)
    turn_limit: int = Field(10, ge=1)
    context_messages: int = Field(5, ge=0)
    dwell_min: float = Field(8.0, ge=0)
    dwell_jitter: float = Field(4.0, ge=0)

    rate_base: float = Field(10.0, ge=0)
    rate_ceiling: float = Field(120.0, ge=0)
    cooldown: float = Field(300.0, ge=0)
    max_attempts: int = Field(3, ge=1)

    driver_tick: float = Field(1.0, gt=0)
    probe_on_startup: bool = False
    probe_delay: float = Field(10.0, ge=0)
    personas_path: Path | None = None

    @model_validator(mode="after")
    def _check_rate_bounds(self) -> Settings:
        if self.rate_ceiling < self.rate_base:
            raise ValueError("rate_ceiling must be >= rate_base")
        return self

    def public(self) -> dict[str, Any]:
        """Tunables for display, with credentials reduced to a count."""
        data = self.model_dump(mode="json", exclude={"api_keys"})
        data["credential_count"] = len(self.api_keys)
        return data


def _env_api_keys(env: Mapping[str, str]) -> list[str]:
    keys = [k.strip() for k in env.get("SITOUT_API_KEYS", "").split(",") if k.strip()]
    numbered = sorted(
        (int(m.group(1)), value)
        for name, value in env.items()
        if (m := _NUMBERED_KEY.match(name)) and value.strip()
    )
    keys.extend(value.strip() for _, value in numbered)
    return keys


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        stored = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(stored, dict):
        raise ValueError(f"Config file {path} must hold a JSON object")
    if "api_keys" in stored:
        logger.warning("ignoring api_keys in %s; set credentials in the environment", path)
        stored.pop("api_keys")
    return stored


def load_settings(
    env: Mapping[str, str] | None = None,
    config_path: Path | None = None,
) -> Settings:
    """Build Settings from defaults, the JSON config file and the environment.

    With `env` omitted, the repo .env file is loaded and os.environ is used.
    """
    if env is None:
        load_dotenv(ROOT / ".env")
        env = os.environ

    merged: dict[str, Any] = {}
    path = config_path or (Path(env["SITOUT_CONFIG"]) if env.get("SITOUT_CONFIG") else None)
    if path is not None:
        merged.update(_read_config_file(path))

    for name in Settings.model_fields:
        if name == "api_keys":
            continue
        value = env.get(f"SITOUT_{name.upper()}")
        if value not in (None, ""):
            merged[name] = value
    if env.get("SITOUT_PERSONAS"):
        merged["personas_path"] = env["SITOUT_PERSONAS"]

    merged["api_keys"] = _env_api_keys(env)
    try:
        return Settings.model_validate(merged)
    except ValidationError as e:
        raise ValueError(f"Invalid settings: {e}") from e
