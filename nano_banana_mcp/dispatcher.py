"""
Tool dispatcher and handlers.

``ToolDispatcher`` owns the session state, routes tool calls by exact
name, validates arguments with the tool's pydantic model, and turns
every failure into an ``McpError``: handler errors that are already
protocol errors pass through, anything else becomes INTERNAL_ERROR.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from google.genai import types
from loguru import logger
from mcp.shared.exceptions import McpError
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    ErrorData,
    TextContent,
)
from pydantic import ValidationError

from .config import Credentials, Provenance, CONFIG_FILENAME, API_KEY_ENV
from .images import Content, RequestEcho, read_image, save_response
from .session import SessionState
from .tools import (
    TOOL_ARGS,
    TOOLS,
    ConfigureArgs,
    ContinueArgs,
    EditArgs,
    GenerateArgs,
    NoArgs,
    ToolDescriptor,
)

NOT_CONFIGURED_MESSAGE = "Gemini API token not configured. Use configure_gemini_token first."
NO_PREVIOUS_IMAGE_MESSAGE = (
    "No previous image found. Please generate or edit an image first, "
    "then use continue_editing for subsequent edits."
)


def mcp_error(code: int, message: str) -> McpError:
    return McpError(ErrorData(code=code, message=message))


def _text(text: str) -> list[Content]:
    return [TextContent(type="text", text=text)]


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(item) for item in first.get("loc", ())) or "arguments"
    return f"{location}: {first.get('msg', 'invalid value')}"


class ToolDispatcher:
    """Routes MCP tool calls to handlers bound to one ``SessionState``."""

    def __init__(self, state: SessionState):
        self.state = state
        self._handlers: dict[str, Callable[[Any], list[Content]]] = {
            "configure_gemini_token": self.configure_gemini_token,
            "generate_image": self.generate_image,
            "edit_image": self.edit_image,
            "get_configuration_status": self.get_configuration_status,
            "continue_editing": self.continue_editing,
            "get_last_image_info": self.get_last_image_info,
        }

    def list_tools(self) -> list[ToolDescriptor]:
        return list(TOOLS)

    def call_tool(self, name: str, arguments: Optional[dict] = None) -> list[Content]:
        handler = self._handlers.get(name)
        if handler is None:
            raise mcp_error(METHOD_NOT_FOUND, f"Unknown tool: {name}")

        model, _ = TOOL_ARGS[name]
        try:
            args = model.model_validate(arguments or {})
        except ValidationError as e:
            raise mcp_error(INVALID_PARAMS, f"Invalid arguments for {name}: {_validation_message(e)}")

        logger.debug(f"Calling tool {name}")
        try:
            return handler(args)
        except McpError:
            raise
        except Exception as e:
            logger.exception(f"Tool {name} failed")
            raise mcp_error(INTERNAL_ERROR, f"Tool execution failed: {e}") from e

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_configured(self) -> None:
        if not self.state.is_configured:
            raise mcp_error(INVALID_REQUEST, NOT_CONFIGURED_MESSAGE)

    def _require_last_image(self) -> str:
        path = self.state.last_image_path
        if not path:
            raise mcp_error(INVALID_REQUEST, NO_PREVIOUS_IMAGE_MESSAGE)
        if not Path(path).exists():
            raise mcp_error(
                INVALID_REQUEST,
                f"Last image file not found at: {path}. Please generate a new image first.",
            )
        return path

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def configure_gemini_token(self, args: ConfigureArgs) -> list[Content]:
        try:
            credentials = Credentials(api_key=args.api_key)
        except ValidationError as e:
            raise mcp_error(INVALID_PARAMS, f"Invalid API key: {e.errors()[0]['msg']}")

        self.state.configure(credentials)
        return _text(
            "✅ Gemini API token configured successfully! "
            "You can now use nano-banana image generation features."
        )

    def _image_config(self, aspect_ratio: str, image_size: str) -> types.GenerateContentConfig:
        settings = self.state.settings
        image_cfg_kwargs = {"aspect_ratio": aspect_ratio}
        if settings.supports_image_size:
            image_cfg_kwargs["image_size"] = image_size
        else:
            logger.debug(f"imageSize={image_size} ignored for {settings.model}")
        return types.GenerateContentConfig(image_config=types.ImageConfig(**image_cfg_kwargs))

    def generate_image(self, args: GenerateArgs) -> list[Content]:
        self._require_configured()
        settings = self.state.settings

        try:
            response = self.state.client.models.generate_content(
                model=settings.model,
                contents=args.prompt,
                config=self._image_config(args.aspect_ratio, args.image_size),
            )
            result = save_response(
                response,
                kind="generate",
                output_dir=settings.output_dir,
                model_name=settings.model_name,
                echo=RequestEcho(
                    prompt=args.prompt,
                    aspect_ratio=args.aspect_ratio,
                    image_size=args.image_size if settings.supports_image_size else None,
                ),
                on_saved=self.state.record_image,
            )
        except Exception as e:
            logger.exception("Error generating image")
            raise mcp_error(INTERNAL_ERROR, f"Failed to generate image: {e}") from e
        return result.content

    def edit_image(self, args: EditArgs) -> list[Content]:
        self._require_configured()
        settings = self.state.settings

        try:
            image_bytes, mime_type = read_image(args.image_path)
            contents: list[Any] = [types.Part.from_bytes(data=image_bytes, mime_type=mime_type)]

            # A reference that cannot be read is left out; the edit still runs.
            for ref_path in args.reference_images:
                try:
                    ref_bytes, ref_mime = read_image(ref_path)
                except Exception as e:
                    logger.debug(f"Skipping reference image {ref_path}: {e}")
                    continue
                contents.append(types.Part.from_bytes(data=ref_bytes, mime_type=ref_mime))

            contents.append(args.prompt)

            response = self.state.client.models.generate_content(
                model=settings.model,
                contents=contents,
                config=self._image_config(args.aspect_ratio, args.image_size),
            )
            result = save_response(
                response,
                kind="edit",
                output_dir=settings.output_dir,
                model_name=settings.model_name,
                echo=RequestEcho(
                    prompt=args.prompt,
                    aspect_ratio=args.aspect_ratio,
                    image_size=args.image_size if settings.supports_image_size else None,
                    image_path=args.image_path,
                    reference_images=tuple(args.reference_images),
                ),
                on_saved=self.state.record_image,
            )
        except Exception as e:
            logger.exception("Error editing image")
            raise mcp_error(INTERNAL_ERROR, f"Failed to edit image: {e}") from e
        return result.content

    def continue_editing(self, args: ContinueArgs) -> list[Content]:
        self._require_configured()
        last_image = self._require_last_image()
        edit_args = EditArgs(
            image_path=last_image,
            prompt=args.prompt,
            reference_images=args.reference_images,
            aspect_ratio=args.aspect_ratio,
            image_size=args.image_size,
        )
        return self.edit_image(edit_args)

    def get_configuration_status(self, args: Optional[NoArgs] = None) -> list[Content]:
        if self.state.is_configured:
            text = "✅ Gemini API token is configured and ready to use"
            if self.state.provenance is Provenance.ENVIRONMENT:
                text += (
                    f"\n📍 Source: Environment variable ({API_KEY_ENV})"
                    "\n💡 This is the most secure configuration method."
                )
            elif self.state.provenance is Provenance.LOCAL_FILE:
                text += (
                    f"\n📍 Source: Local configuration file ({CONFIG_FILENAME})"
                    "\n💡 Consider using environment variables for better security."
                )
            text += f"\nProvenance: {self.state.provenance.value}"
        else:
            text = (
                "❌ Gemini API token is not configured\n\n"
                "📝 Configuration options (in priority order):\n"
                "1. 🥇 MCP client environment variables (Recommended)\n"
                f"2. 🥈 System environment variable: {API_KEY_ENV}\n"
                "3. 🥉 Use configure_gemini_token tool\n\n"
                "💡 For the most secure setup, add this to your MCP configuration:\n"
                f'"env": {{ "{API_KEY_ENV}": "your-api-key-here" }}'
                f"\nProvenance: {Provenance.NOT_CONFIGURED.value}"
            )
        return _text(text)

    def get_last_image_info(self, args: Optional[NoArgs] = None) -> list[Content]:
        path = self.state.last_image_path
        if not path:
            return _text(
                "📷 No previous image found.\n\n"
                "Please generate or edit an image first, then this command will show "
                "information about your last image."
            )

        file = Path(path)
        if not file.exists():
            return _text(
                f"📷 Last Image Information:\n\nPath: {path}\nStatus: ❌ File not found\n\n"
                "💡 The image file may have been moved or deleted. Please generate a new image."
            )

        stat = file.stat()
        modified = datetime.fromtimestamp(stat.st_mtime).isoformat(sep=" ", timespec="seconds")
        return _text(
            f"📷 Last Image Information:\n\nPath: {path}\n"
            f"File Size: {round(stat.st_size / 1024)} KB ({stat.st_size} bytes)\n"
            f"Last Modified: {modified}\n\n"
            "💡 Use continue_editing to make further changes to this image."
        )
