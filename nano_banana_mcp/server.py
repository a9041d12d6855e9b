"""
Nano Banana MCP Server - Image generation and editing via the Gemini API.

Provides MCP tools for generating images, editing them with optional
reference images, and iterating on the last image produced in the
session.

Supported models (select with GEMINI_IMAGE_MODEL):
  - gemini-2.5-flash-image (default): fast, cost-effective
  - gemini-3-pro-image-preview: higher quality, honours imageSize
"""

import sys
from typing import Annotated, Any

from fastmcp import FastMCP
from loguru import logger
from pydantic import Field

from .config import load_env_file, load_settings, resolve_credentials
from .dispatcher import ToolDispatcher
from .session import SessionState
from .tools import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_IMAGE_SIZE,
    TOOL_ARGS,
    AspectRatio,
    ImageSize,
)

SERVER_NAME = "nano-banana-mcp"


def configure_logging(level: str) -> None:
    """Send logs to stderr only; stdout carries the MCP stream."""
    logger.remove()
    logger.add(sys.stderr, level=level)


def _help(tool: str, field: str) -> Any:
    """``Field`` for a tool parameter, described by the tool's argument model."""
    model, _ = TOOL_ARGS[tool]
    info = model.model_fields[field]
    if info.default_factory is not None:
        return Field(default_factory=info.default_factory, description=info.description)
    return Field(description=info.description)


def _arguments(**kwargs) -> dict:
    return {key: value for key, value in kwargs.items() if value is not None}


# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------


def build_server(dispatcher: ToolDispatcher) -> FastMCP:
    """Register the six tools on a FastMCP server, all routed via ``dispatcher``."""
    mcp = FastMCP(SERVER_NAME)
    descriptions = {tool.name: tool.description for tool in dispatcher.list_tools()}

    def tool(name: str):
        return mcp.tool(name=name, description=descriptions[name])

    @tool("configure_gemini_token")
    def configure_gemini_token(
        apiKey: Annotated[str, _help("configure_gemini_token", "api_key")],
    ):
        return dispatcher.call_tool("configure_gemini_token", {"apiKey": apiKey})

    @tool("generate_image")
    def generate_image(
        prompt: Annotated[str, _help("generate_image", "prompt")],
        aspectRatio: Annotated[AspectRatio, _help("generate_image", "aspect_ratio")] = DEFAULT_ASPECT_RATIO,
        imageSize: Annotated[ImageSize, _help("generate_image", "image_size")] = DEFAULT_IMAGE_SIZE,
    ):
        return dispatcher.call_tool(
            "generate_image",
            _arguments(prompt=prompt, aspectRatio=aspectRatio, imageSize=imageSize),
        )

    @tool("edit_image")
    def edit_image(
        imagePath: Annotated[str, _help("edit_image", "image_path")],
        prompt: Annotated[str, _help("edit_image", "prompt")],
        referenceImages: Annotated[list[str], _help("edit_image", "reference_images")],
        aspectRatio: Annotated[AspectRatio, _help("edit_image", "aspect_ratio")] = DEFAULT_ASPECT_RATIO,
        imageSize: Annotated[ImageSize, _help("edit_image", "image_size")] = DEFAULT_IMAGE_SIZE,
    ):
        return dispatcher.call_tool(
            "edit_image",
            _arguments(
                imagePath=imagePath, prompt=prompt, referenceImages=referenceImages,
                aspectRatio=aspectRatio, imageSize=imageSize,
            ),
        )

    @tool("get_configuration_status")
    def get_configuration_status():
        return dispatcher.call_tool("get_configuration_status", {})

    @tool("continue_editing")
    def continue_editing(
        prompt: Annotated[str, _help("continue_editing", "prompt")],
        referenceImages: Annotated[list[str], _help("continue_editing", "reference_images")],
        aspectRatio: Annotated[AspectRatio, _help("continue_editing", "aspect_ratio")] = DEFAULT_ASPECT_RATIO,
        imageSize: Annotated[ImageSize, _help("continue_editing", "image_size")] = DEFAULT_IMAGE_SIZE,
    ):
        return dispatcher.call_tool(
            "continue_editing",
            _arguments(
                prompt=prompt, referenceImages=referenceImages,
                aspectRatio=aspectRatio, imageSize=imageSize,
            ),
        )

    @tool("get_last_image_info")
    def get_last_image_info():
        return dispatcher.call_tool("get_last_image_info", {})

    return mcp


def create_dispatcher() -> ToolDispatcher:
    """Resolve settings and credentials from the environment."""
    settings = load_settings()
    configure_logging(settings.log_level)

    state = SessionState(settings)
    credentials, provenance = resolve_credentials(settings)
    state.set_credentials(credentials, provenance)
    logger.info(f"Gemini credentials: {state.provenance.value}; model: {settings.model}")
    return ToolDispatcher(state)


def main() -> None:
    load_env_file()
    mcp = build_server(create_dispatcher())
    mcp.run(transport="stdio")
