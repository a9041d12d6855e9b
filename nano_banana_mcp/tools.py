"""Tool descriptors and the argument models that validate each call."""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

AspectRatio = Literal["1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9"]
ImageSize = Literal["1K", "2K", "4K"]

DEFAULT_ASPECT_RATIO = "4:3"
DEFAULT_IMAGE_SIZE = "1K"

ASPECT_RATIO_HELP = "Aspect ratio of the generated image. Default: 4:3"
IMAGE_SIZE_HELP = "Image resolution (only works with gemini-3-pro-image-preview). Default: 1K"
REFERENCE_HELP = (
    "Optional array of file paths to additional reference images to use during "
    "editing (e.g., for style transfer, adding elements, etc.)"
)


class ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NoArgs(ToolArgs):
    model_config = ConfigDict(extra="forbid")


class ConfigureArgs(ToolArgs):
    api_key: str = Field(alias="apiKey", description="Your Gemini API key from Google AI Studio")


class GenerateArgs(ToolArgs):
    prompt: str = Field(description="Text prompt describing the NEW image to create from scratch")
    aspect_ratio: AspectRatio = Field(DEFAULT_ASPECT_RATIO, alias="aspectRatio",
                                      description=ASPECT_RATIO_HELP)
    image_size: ImageSize = Field(DEFAULT_IMAGE_SIZE, alias="imageSize",
                                  description=IMAGE_SIZE_HELP)


class ContinueArgs(ToolArgs):
    prompt: str = Field(
        description="Text describing the modifications/changes/improvements to make to the "
        "last image (e.g., 'change the hat color to red', 'remove the background')"
    )
    reference_images: list[str] = Field(default_factory=list, alias="referenceImages",
                                        description=REFERENCE_HELP)
    aspect_ratio: AspectRatio = Field(DEFAULT_ASPECT_RATIO, alias="aspectRatio",
                                      description=ASPECT_RATIO_HELP)
    image_size: ImageSize = Field(DEFAULT_IMAGE_SIZE, alias="imageSize",
                                  description=IMAGE_SIZE_HELP)


class EditArgs(ContinueArgs):
    image_path: str = Field(alias="imagePath",
                            description="Full file path to the main image file to edit")
    prompt: str = Field(
        description="Text describing the modifications to make to the existing image"
    )


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: dict


def _schema(model: type[BaseModel]) -> dict:
    schema = model.model_json_schema(by_alias=True)
    schema.pop("title", None)
    for prop in schema.get("properties", {}).values():
        prop.pop("title", None)
    schema.setdefault("properties", {})
    return schema


# name -> (argument model, description)
TOOL_ARGS: dict[str, tuple[type[ToolArgs], str]] = {
    "configure_gemini_token": (
        ConfigureArgs,
        "Configure your Gemini API token for nano-banana image generation",
    ),
    "generate_image": (
        GenerateArgs,
        "Generate a NEW image from text prompt. Use this ONLY when creating a completely "
        "new image, not when modifying an existing one.",
    ),
    "edit_image": (
        EditArgs,
        "Edit a SPECIFIC existing image file, optionally using additional reference images. "
        "Use this when you have the exact file path of an image to modify.",
    ),
    "get_configuration_status": (
        NoArgs,
        "Check if Gemini API token is configured",
    ),
    "continue_editing": (
        ContinueArgs,
        "Continue editing the LAST image that was generated or edited in this session, "
        "optionally using additional reference images. Use this for iterative improvements, "
        "modifications, or changes to the most recent image. This automatically uses the "
        "previous image without needing a file path.",
    ),
    "get_last_image_info": (
        NoArgs,
        "Get information about the last generated/edited image in this session (file path, "
        "size, etc.). Use this to check what image is currently available for "
        "continue_editing.",
    ),
}

TOOLS: tuple[ToolDescriptor, ...] = tuple(
    ToolDescriptor(name=name, description=description, input_schema=_schema(model))
    for name, (model, description) in TOOL_ARGS.items()
)
