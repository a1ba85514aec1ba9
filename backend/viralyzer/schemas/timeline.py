"""Edit document schemas.

The edit document is the wire format exchanged with the render service and
stored on the project:

    {"output": {"size": {"width": .., "height": ..}},
     "timeline": {"background": "#000000", "tracks": [{"clips": [...]}]}}

Assets and clips are closed models (unknown fields are rejected) so that a
sanitized document round-trips through them unchanged. Document, output,
timeline and track models keep unknown fields verbatim.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

HEX_COLOR_PATTERN = r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$"

AssetType = Literal["text", "image", "video", "audio", "luma", "shape", "html"]
ShapeKind = Literal["rectangle", "circle", "line"]

ASSET_TYPES: frozenset[str] = frozenset(
    ["text", "image", "video", "audio", "luma", "shape", "html"]
)
MEDIA_ASSET_TYPES: frozenset[str] = frozenset(["image", "video", "audio", "luma"])
SHAPE_KINDS: frozenset[str] = frozenset(["rectangle", "circle", "line"])


# =============================================================================
# Assets
# =============================================================================


class Background(BaseModel):
    model_config = ConfigDict(extra="forbid")

    color: str = Field(pattern=HEX_COLOR_PATTERN)
    opacity: float = Field(default=1, ge=0, le=1)


class TextAsset(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["text"]
    text: str
    color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)
    background: Background | None = None


class ImageAsset(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["image"]
    src: str = Field(min_length=1)


class LumaAsset(BaseModel):
    """Transition mask."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["luma"]
    src: str = Field(min_length=1)


class VideoAsset(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["video"]
    src: str = Field(min_length=1)
    volume: float | None = Field(default=None, ge=0)


class AudioAsset(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["audio"]
    src: str = Field(min_length=1)
    volume: float | None = Field(default=None, ge=0)


class ShapeAsset(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["shape"]
    shape: ShapeKind
    background: Background = Field(default_factory=lambda: Background(color="#FFFFFF", opacity=1))


class HtmlAsset(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["html"]
    html: str = ""
    css: str = ""


Asset = Annotated[
    Union[TextAsset, ImageAsset, VideoAsset, AudioAsset, LumaAsset, ShapeAsset, HtmlAsset],
    Field(discriminator="type"),
]

# Closed field set per asset variant, including the discriminator
ASSET_FIELDS: dict[str, frozenset[str]] = {
    "text": frozenset(["type", "text", "color", "background"]),
    "image": frozenset(["type", "src"]),
    "luma": frozenset(["type", "src"]),
    "video": frozenset(["type", "src", "volume"]),
    "audio": frozenset(["type", "src", "volume"]),
    "shape": frozenset(["type", "shape", "background"]),
    "html": frozenset(["type", "html", "css"]),
}


def asset_fields(asset_type: str) -> frozenset[str]:
    """Return the fields an asset of the given type may carry."""
    return ASSET_FIELDS[asset_type]


# =============================================================================
# Clips, tracks, document
# =============================================================================


class Transition(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    in_: str | None = Field(default=None, alias="in")
    out: str | None = None


class Clip(BaseModel):
    model_config = ConfigDict(extra="forbid")

    asset: Asset
    start: float = Field(ge=0, allow_inf_nan=False)
    length: float = Field(gt=0, allow_inf_nan=False)
    transition: Transition | None = None
    effect: str | None = Field(default=None, min_length=1)


class Track(BaseModel):
    model_config = ConfigDict(extra="allow")

    clips: list[Clip] = Field(default_factory=list)


class Timeline(BaseModel):
    model_config = ConfigDict(extra="allow")

    background: str | None = None
    tracks: list[Track] = Field(default_factory=list)


class OutputSize(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class Output(BaseModel):
    model_config = ConfigDict(extra="allow")

    format: str | None = None
    size: OutputSize | None = None


class EditDocument(BaseModel):
    model_config = ConfigDict(extra="allow")

    output: Output | None = None
    timeline: Timeline = Field(default_factory=Timeline)

    @classmethod
    def empty(cls, width: int = 1080, height: int = 1920, background: str = "#000000") -> "EditDocument":
        """Blank document with a single empty track."""
        return cls(
            output=default_output(width, height),
            timeline=Timeline(background=background, tracks=[Track()]),
        )

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to the JSON shape the render service expects."""
        return self.model_dump(by_alias=True, exclude_none=True)


def default_output(width: int, height: int, format: str = "mp4") -> Output:
    return Output(format=format, size=OutputSize(width=width, height=height))
