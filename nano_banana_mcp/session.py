"""Process-lifetime session state shared by all tool handlers."""

from pathlib import Path
from typing import Any, Callable, Optional

from google import genai
from loguru import logger

from .config import Credentials, Provenance, Settings, save_config_record

ClientFactory = Callable[[str], Any]


def default_client_factory(api_key: str) -> genai.Client:
    return genai.Client(api_key=api_key)


class SessionState:
    """Credentials, the API client built from them, and the last image path.

    The client is always created and replaced together with the
    credentials. ``last_image_path`` is not checked for existence until
    something reads it.
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: ClientFactory = default_client_factory,
    ):
        self.settings = settings
        self._client_factory = client_factory
        self.credentials: Optional[Credentials] = None
        self.client: Any = None
        self.provenance = Provenance.NOT_CONFIGURED
        self.last_image_path: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return self.credentials is not None and self.client is not None

    def set_credentials(self, credentials: Optional[Credentials], provenance: Provenance) -> None:
        """Install credentials (or clear them) and rebuild the client."""
        if credentials is None:
            self.credentials = None
            self.client = None
            self.provenance = Provenance.NOT_CONFIGURED
            return
        self.client = self._client_factory(credentials.api_key)
        self.credentials = credentials
        self.provenance = provenance

    def configure(self, credentials: Credentials) -> Path:
        """Manual configuration: install the key and persist it locally."""
        self.set_credentials(credentials, Provenance.LOCAL_FILE)
        path = self.settings.config_path
        save_config_record(credentials, path)
        logger.info(f"Saved Gemini API key to {path}")
        return path

    def record_image(self, path: str) -> None:
        self.last_image_path = path
