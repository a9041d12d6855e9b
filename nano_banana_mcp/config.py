"""
Runtime configuration for the Nano Banana MCP server.

Covers three things:
  - Settings read from the environment (model variant, output directory,
    log level), optionally seeded from a ``.env`` file.
  - The ranked credential sources: the ``GEMINI_API_KEY`` environment
    variable first, then the local ``.nano-banana-config.json`` record.
  - The local configuration record itself (read at startup, written by
    the ``configure_gemini_token`` tool).
"""

import os
import sys
import json
from enum import Enum
from pathlib import Path
from dataclasses import dataclass, field
from typing import Callable, Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

API_KEY_ENV = "GEMINI_API_KEY"
MODEL_ENV = "GEMINI_IMAGE_MODEL"
OUTPUT_DIR_ENV = "NANO_BANANA_OUTPUT_DIR"
LOG_LEVEL_ENV = "NANO_BANANA_LOG_LEVEL"

CONFIG_FILENAME = ".nano-banana-config.json"

FLASH_MODEL = "gemini-2.5-flash-image"
PRO_MODEL = "gemini-3-pro-image-preview"
DEFAULT_MODEL = FLASH_MODEL

# Model registry: id -> display name, and whether it honours imageSize
MODELS = {
    FLASH_MODEL: {"name": "Gemini 2.5 Flash Image", "image_sizes": False},
    PRO_MODEL: {"name": "Gemini 3 Pro Image", "image_sizes": True},
}

DEFAULT_LOG_LEVEL = "WARNING"

# Working directories that should never receive generated images
_SYSTEM_PREFIXES = ("/usr/", "/opt/", "/var/")
_TEMP_MARKERS = ("/tmp/", "/cache/", "/.npm/")


class Provenance(str, Enum):
    """Which source produced the active credentials."""

    ENVIRONMENT = "environment"
    LOCAL_FILE = "local-file"
    NOT_CONFIGURED = "not-configured"


class Credentials(BaseModel):
    """A Gemini API key, serialised as ``{"geminiApiKey": ...}``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    api_key: str = Field(alias="geminiApiKey", min_length=1)

    @field_validator("api_key")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Gemini API key is required")
        return value


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Settings:
    """Environment-derived settings, resolved once at startup."""

    model: str = DEFAULT_MODEL
    output_dir_override: Optional[str] = None
    log_level: str = DEFAULT_LOG_LEVEL
    cwd: Path = field(default_factory=Path.cwd)
    platform: str = sys.platform

    @property
    def model_name(self) -> str:
        info = MODELS.get(self.model)
        return info["name"] if info else self.model

    @property
    def supports_image_size(self) -> bool:
        info = MODELS.get(self.model)
        return bool(info and info["image_sizes"])

    @property
    def config_path(self) -> Path:
        return self.cwd / CONFIG_FILENAME

    @property
    def output_dir(self) -> Path:
        """Where generated and edited images are saved."""
        if self.output_dir_override:
            return Path(self.output_dir_override)

        home = Path.home()
        if self.platform == "win32":
            return home / "Documents" / "nano-banana-images"

        cwd = self.cwd.as_posix()
        if (
            cwd == "/"
            or cwd.startswith(_SYSTEM_PREFIXES)
            or any(marker in cwd for marker in _TEMP_MARKERS)
        ):
            return home / "nano-banana-images"
        return self.cwd / "generated_imgs"


def load_env_file(cwd: Optional[Path] = None) -> bool:
    """Load a ``.env`` file from the working directory, if present.

    Variables already set in the process environment take precedence.
    """
    env_path = (cwd or Path.cwd()) / ".env"
    if not env_path.is_file():
        return False
    return load_dotenv(env_path, override=False)


def load_settings(environ: Optional[dict] = None, cwd: Optional[Path] = None) -> Settings:
    """Build ``Settings`` from the environment."""
    env = os.environ if environ is None else environ
    return Settings(
        model=env.get(MODEL_ENV) or DEFAULT_MODEL,
        output_dir_override=env.get(OUTPUT_DIR_ENV) or None,
        log_level=(env.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper(),
        cwd=cwd or Path.cwd(),
    )


# ---------------------------------------------------------------------------
# Local configuration record
# ---------------------------------------------------------------------------


def save_config_record(credentials: Credentials, path: Path) -> None:
    """Overwrite the local configuration record with ``credentials``."""
    data = credentials.model_dump(by_alias=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def load_config_record(path: Path) -> Optional[Credentials]:
    """Read the local configuration record. Returns None if absent or invalid."""
    if not path.is_file():
        return None
    try:
        return Credentials.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable config record {path}: {e}")
        return None


# ---------------------------------------------------------------------------
# Credential resolution
# ---------------------------------------------------------------------------

Resolved = tuple[Credentials, Provenance]


def _from_environment(settings: Settings, environ) -> Optional[Resolved]:
    raw = environ.get(API_KEY_ENV)
    if raw is None:
        return None
    try:
        return Credentials(api_key=raw), Provenance.ENVIRONMENT
    except ValidationError:
        logger.warning(f"{API_KEY_ENV} is set but empty; falling back to {CONFIG_FILENAME}")
        return None


def _from_config_record(settings: Settings, environ) -> Optional[Resolved]:
    credentials = load_config_record(settings.config_path)
    if credentials is None:
        return None
    return credentials, Provenance.LOCAL_FILE


RESOLVERS: tuple[Callable[[Settings, dict], Optional[Resolved]], ...] = (
    _from_environment,
    _from_config_record,
)


def resolve_credentials(
    settings: Settings, environ: Optional[dict] = None
) -> tuple[Optional[Credentials], Provenance]:
    """Try each credential source in priority order; first success wins."""
    env = os.environ if environ is None else environ
    for resolver in RESOLVERS:
        resolved = resolver(settings, env)
        if resolved is not None:
            return resolved
    return None, Provenance.NOT_CONFIGURED
