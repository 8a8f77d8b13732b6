"""
Studio configuration — read once from the environment (.env supported)
and passed explicitly into the components that need it.

Env vars:
  GEMINI_API_KEY            — required for generation (API_KEY also accepted)
  ADSTUDIO_IMAGE_MODEL      — Imagen model for marketing photos
  ADSTUDIO_TEXT_MODEL       — Gemini model for caption + hashtags
  ADSTUDIO_FETCH_TIMEOUT    — seconds for fetching remote images
  ADSTUDIO_FILENAME_PREFIX  — prefix of exported ad filenames
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_IMAGE_MODEL = "imagen-4.0-generate-001"
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_FETCH_TIMEOUT = 15.0
DEFAULT_FILENAME_PREFIX = "pepomart-ad"


@dataclass(frozen=True)
class StudioConfig:
    api_key: str = ""
    image_model: str = DEFAULT_IMAGE_MODEL
    text_model: str = DEFAULT_TEXT_MODEL
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    filename_prefix: str = DEFAULT_FILENAME_PREFIX

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        use_dotenv: bool = True,
    ) -> "StudioConfig":
        """Build a config from `environ` (defaults to os.environ after loading .env)."""
        if environ is None:
            if use_dotenv:
                load_dotenv()
            environ = os.environ

        raw_timeout = environ.get("ADSTUDIO_FETCH_TIMEOUT", "")
        try:
            fetch_timeout = float(raw_timeout) if raw_timeout else DEFAULT_FETCH_TIMEOUT
        except ValueError:
            raise ConfigError(f"ADSTUDIO_FETCH_TIMEOUT is not a number: {raw_timeout!r}")

        return cls(
            api_key=environ.get("GEMINI_API_KEY") or environ.get("API_KEY") or "",
            image_model=environ.get("ADSTUDIO_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
            text_model=environ.get("ADSTUDIO_TEXT_MODEL") or DEFAULT_TEXT_MODEL,
            fetch_timeout=fetch_timeout,
            filename_prefix=environ.get("ADSTUDIO_FILENAME_PREFIX") or DEFAULT_FILENAME_PREFIX,
        )

    def validate(self, require_api_key: bool = True) -> "StudioConfig":
        if require_api_key and not self.api_key.strip():
            raise ConfigError(
                "GEMINI_API_KEY not set. Create a .env file or export the variable."
            )
        if self.fetch_timeout <= 0:
            raise ConfigError(f"fetch_timeout must be positive, got {self.fetch_timeout}")
        return self
