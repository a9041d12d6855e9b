"""
Image file helpers and response normalisation.

Turns a ``generate_content`` response into saved files plus the MCP
content returned to the caller: one status text block first, then one
image block per saved image.
"""

import base64
import uuid
from pathlib import Path
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Union

from loguru import logger
from mcp.types import ImageContent, TextContent

MIME_MAP = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}
DEFAULT_INPUT_MIME_TYPE = "image/jpeg"
DEFAULT_OUTPUT_MIME_TYPE = "image/png"

# Filename prefix per operation kind
KINDS = {"generate", "edit"}

Content = Union[TextContent, ImageContent]


def mime_type_for(path: str) -> str:
    """MIME type of a local image, from its extension only."""
    return MIME_MAP.get(Path(path).suffix.lower(), DEFAULT_INPUT_MIME_TYPE)


def read_image(path: str) -> tuple[bytes, str]:
    """Read an image file. Raises OSError if it cannot be read."""
    return Path(path).read_bytes(), mime_type_for(path)


# ---------------------------------------------------------------------------
# Response parts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    data: bytes
    mime_type: str = DEFAULT_OUTPUT_MIME_TYPE


Part = Union[TextPart, ImagePart]


def extract_parts(response) -> list[Part]:
    """Flatten the first candidate of a response into text and image parts.

    Parts carrying neither text nor inline data are dropped. A part with
    both yields a text part followed by an image part.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    raw_parts = getattr(content, "parts", None) or []

    parts: list[Part] = []
    for raw in raw_parts:
        if getattr(raw, "thought", None):
            continue
        if raw.text:
            parts.append(TextPart(raw.text))
        inline = getattr(raw, "inline_data", None)
        if inline is not None and inline.data:
            data = inline.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            parts.append(ImagePart(data, inline.mime_type or DEFAULT_OUTPUT_MIME_TYPE))
    return parts


# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------


def image_filename(kind: str, now: Optional[datetime] = None) -> str:
    """``{kind}-{timestamp}-{id}.png`` with ':' and '.' in the timestamp made safe."""
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    stamp = stamp.replace(":", "-").replace(".", "-")
    short_id = uuid.uuid4().hex[:6]
    return f"{kind}-{stamp}-{short_id}.png"


def save_image(image_data: bytes, out_dir: Path, kind: str) -> str:
    """Save image bytes into ``out_dir`` and return the absolute path."""
    filepath = out_dir / image_filename(kind)
    filepath.write_bytes(image_data)
    return str(filepath.resolve())


@dataclass
class GenerationResult:
    content: list[Content] = field(default_factory=list)
    saved_files: list[str] = field(default_factory=list)
    description: str = ""


@dataclass(frozen=True)
class RequestEcho:
    """The caller's request parameters, echoed back in the status text."""

    prompt: str
    aspect_ratio: str
    image_size: Optional[str] = None
    image_path: Optional[str] = None
    reference_images: Sequence[str] = ()


def _status_text(kind: str, model_name: str, echo: RequestEcho, description: str,
                 saved_files: list[str]) -> str:
    tool = "generate_image" if kind == "generate" else "edit_image"
    lines = []
    if kind == "generate":
        lines.append(f"🎨 Image generated with nano-banana ({model_name})!")
        lines.append("")
        lines.append(f'Prompt: "{echo.prompt}"')
    else:
        lines.append(f"🎨 Image edited with nano-banana ({model_name})!")
        lines.append("")
        lines.append(f"Original: {echo.image_path}")
        lines.append(f'Edit prompt: "{echo.prompt}"')
    lines.append(f"Aspect Ratio: {echo.aspect_ratio}")
    if echo.image_size:
        lines.append(f"Resolution: {echo.image_size}")

    if echo.reference_images:
        lines.append("")
        lines.append("Reference images used:")
        lines.extend(f"- {ref}" for ref in echo.reference_images)

    if description:
        lines.append("")
        lines.append(f"Description: {description}")

    lines.append("")
    if saved_files:
        label = "Image saved to:" if kind == "generate" else "Edited image saved to:"
        lines.append(f"📁 {label}")
        lines.extend(f"- {path}" for path in saved_files)
        lines.append("")
        lines.append("💡 View the image by:")
        lines.append("1. Opening the file at the path above")
        lines.append(f'2. Expanding the "{tool}" call details in your MCP client')
        lines.append("")
        lines.append("🔄 To modify this image, use: continue_editing")
        lines.append("📋 To check current image info, use: get_last_image_info")
    else:
        if kind == "generate":
            lines.append("Note: No image was generated. The model may have returned only text.")
        else:
            lines.append("Note: No edited image was generated.")
        lines.append("")
        lines.append("💡 Tip: Try running the command again - "
                     "sometimes the first call needs to warm up the model.")
    return "\n".join(lines)


def save_response(
    response,
    *,
    kind: str,
    output_dir: Path,
    model_name: str,
    echo: RequestEcho,
    on_saved: Optional[Callable[[str], None]] = None,
) -> GenerationResult:
    """Save every inline image of ``response`` and build the MCP content."""
    if kind not in KINDS:
        raise ValueError(f"Unknown operation kind '{kind}'. Valid: {sorted(KINDS)}")

    output_dir.mkdir(parents=True, exist_ok=True)

    result = GenerationResult()
    images: list[ImageContent] = []
    for part in extract_parts(response):
        if isinstance(part, TextPart):
            result.description += part.text
        elif isinstance(part, ImagePart):
            path = save_image(part.data, output_dir, kind)
            logger.info(f"Saved {kind} image to {path}")
            result.saved_files.append(path)
            if on_saved is not None:
                on_saved(path)
            images.append(ImageContent(
                type="image",
                data=base64.b64encode(part.data).decode("utf-8"),
                mimeType=part.mime_type,
            ))

    if not result.saved_files:
        logger.warning(f"{kind} request returned no image")

    status = _status_text(kind, model_name, echo, result.description, result.saved_files)
    result.content = [TextContent(type="text", text=status), *images]
    return result
