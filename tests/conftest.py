"""Shared fixtures: an isolated working directory and a fake Gemini client."""

from pathlib import Path

import pytest
from google.genai import types

from nano_banana_mcp.config import Credentials, Provenance, Settings
from nano_banana_mcp.dispatcher import ToolDispatcher
from nano_banana_mcp.session import SessionState

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

TOOL_NAMES = [
    "configure_gemini_token",
    "generate_image",
    "edit_image",
    "get_configuration_status",
    "continue_editing",
    "get_last_image_info",
]


def make_response(*parts: types.Part) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


def text_part(text: str) -> types.Part:
    return types.Part(text=text)


def image_part(data: bytes = PNG_BYTES, mime_type: str = "image/png") -> types.Part:
    return types.Part(inline_data=types.Blob(data=data, mime_type=mime_type))


class FakeModels:
    def __init__(self):
        self.calls = []
        self.response = make_response(text_part("A red fox"), image_part())
        self.error = None

    def generate_content(self, *, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


class FakeClient:
    def __init__(self, api_key: str):
        self.api_key = api_key
        self.models = FakeModels()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path):
    """Run every test from an empty working directory with no Gemini env vars."""
    for name in ("GEMINI_API_KEY", "GEMINI_IMAGE_MODEL", "NANO_BANANA_OUTPUT_DIR",
                 "NANO_BANANA_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "images"


@pytest.fixture
def settings(tmp_path: Path, output_dir: Path) -> Settings:
    return Settings(output_dir_override=str(output_dir), cwd=tmp_path)


@pytest.fixture
def state(settings: Settings) -> SessionState:
    return SessionState(settings, client_factory=FakeClient)


@pytest.fixture
def configured_state(state: SessionState) -> SessionState:
    state.set_credentials(Credentials(api_key="test-key"), Provenance.ENVIRONMENT)
    return state


@pytest.fixture
def dispatcher(state: SessionState) -> ToolDispatcher:
    return ToolDispatcher(state)


@pytest.fixture
def configured(configured_state: SessionState) -> ToolDispatcher:
    return ToolDispatcher(configured_state)


@pytest.fixture
def source_image(tmp_path: Path) -> Path:
    path = tmp_path / "source.png"
    path.write_bytes(PNG_BYTES)
    return path
