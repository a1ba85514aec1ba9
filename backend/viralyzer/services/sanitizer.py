"""Edit document sanitizer.

Repairs or discards malformed fragments of an edit document before it is
stored, loaded into the editor or sent to the render service. ``sanitize``
never raises: anything that cannot be repaired is dropped.

Guarantees on the returned document:
- ``timeline.tracks`` is a list and every track has a ``clips`` list
- every clip has a finite ``start >= 0`` and ``length > 0``
- every asset belongs to exactly one variant and carries only its fields
- ``sanitize(sanitize(doc)) == sanitize(doc)``
"""

import copy
import logging
import math
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

from pydantic import ValidationError as PydanticValidationError

from viralyzer.exceptions import InvalidDocumentError
from viralyzer.schemas.timeline import (
    ASSET_TYPES,
    MEDIA_ASSET_TYPES,
    SHAPE_KINDS,
    EditDocument,
)

logger = logging.getLogger(__name__)

DEFAULT_CLIP_START = 0
DEFAULT_CLIP_LENGTH = 5
DEFAULT_SHAPE_BACKGROUND = {"color": "#FFFFFF", "opacity": 1}

LEGACY_TYPE_ALIASES = {"title": "text"}

HEX_COLOR_RE = re.compile(r"#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})")
AUDIO_EXT_RE = re.compile(r"\.(?:mp3|wav|aac|m4a|ogg|oga|flac|opus|weba)$", re.IGNORECASE)
VIDEO_EXT_RE = re.compile(r"\.(?:mp4|mov|webm|m4v|mkv|avi|mpeg|mpg|ogv)$", re.IGNORECASE)


# =============================================================================
# Scalars
# =============================================================================


def _to_number(value: Any) -> float | int | None:
    """Coerce ints in float range, finite floats and numeric strings; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            float(value)
        except OverflowError:
            return None
        number = value
    elif isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        if number.is_integer():
            number = int(number)
    else:
        return None
    if isinstance(number, float) and not math.isfinite(number):
        return None
    return number


def normalize_start(value: Any) -> float | int:
    number = _to_number(value)
    if number is None or number < 0:
        return DEFAULT_CLIP_START
    return number


def normalize_length(value: Any) -> float | int:
    number = _to_number(value)
    if number is None or number <= 0:
        return DEFAULT_CLIP_LENGTH
    return number


def normalize_color(value: Any) -> str | None:
    """Return the color if it is a 3- or 6-digit hex color, else None."""
    if isinstance(value, str) and HEX_COLOR_RE.fullmatch(value):
        return value
    return None


def normalize_opacity(value: Any) -> float | int:
    number = _to_number(value)
    if number is None:
        return 1
    return min(max(number, 0), 1)


def normalize_background(value: Any) -> dict[str, Any] | None:
    """Normalize a bare hex string or ``{color, opacity}`` mapping.

    Returns None when no valid color can be extracted.
    """
    if isinstance(value, str):
        color = normalize_color(value)
        return {"color": color, "opacity": 1} if color else None
    if isinstance(value, Mapping):
        color = normalize_color(value.get("color"))
        if color is None:
            return None
        return {"color": color, "opacity": normalize_opacity(value.get("opacity"))}
    return None


def normalize_effect(value: Any) -> str | None:
    if isinstance(value, str):
        return value or None
    if isinstance(value, Mapping):
        flattened = value.get("value")
        if isinstance(flattened, str) and flattened:
            return flattened
    return None


def normalize_transition(value: Any) -> dict[str, str] | None:
    """Keep only string ``in``/``out`` entries (legacy ``duration`` is dropped)."""
    if not isinstance(value, Mapping):
        return None
    transition = {key: value[key] for key in ("in", "out") if isinstance(value.get(key), str) and value[key]}
    return transition or None


# =============================================================================
# Assets
# =============================================================================


def _src_path(src: str) -> str:
    try:
        return urlsplit(src).path
    except ValueError:
        return src


def infer_asset_type(asset: Mapping[str, Any]) -> str | None:
    """Infer the variant of an asset whose ``type`` is missing or unknown."""
    if "text" in asset:
        return "text"
    if "html" in asset:
        return "html"
    src = asset.get("src")
    if isinstance(src, str) and src:
        path = _src_path(src)
        if AUDIO_EXT_RE.search(path):
            return "audio"
        if VIDEO_EXT_RE.search(path):
            return "video"
        return "image"
    if "shape" in asset:
        return "shape"
    return None


def _resolve_type(asset: Mapping[str, Any]) -> str | None:
    asset_type = asset.get("type")
    if isinstance(asset_type, str):
        asset_type = LEGACY_TYPE_ALIASES.get(asset_type, asset_type)
        if asset_type in ASSET_TYPES:
            return asset_type
    return infer_asset_type(asset)


def _normalize_text(asset: Mapping[str, Any]) -> dict[str, Any] | None:
    text = asset.get("text")
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        try:
            text = str(text)
        except ValueError:
            # int too long to convert
            return None
    if not isinstance(text, str):
        return None
    result: dict[str, Any] = {"type": "text", "text": text}
    color = normalize_color(asset.get("color"))
    if color:
        result["color"] = color
    background = normalize_background(asset.get("background"))
    if background:
        result["background"] = background
    return result


def _normalize_media(asset_type: str, asset: Mapping[str, Any]) -> dict[str, Any] | None:
    src = asset.get("src")
    if not isinstance(src, str) or not src:
        return None
    result: dict[str, Any] = {"type": asset_type, "src": src}
    if asset_type in ("video", "audio"):
        volume = _to_number(asset.get("volume"))
        if volume is not None:
            result["volume"] = max(volume, 0)
    return result


def _normalize_shape(asset: Mapping[str, Any]) -> dict[str, Any] | None:
    shape = asset.get("shape")
    if shape not in SHAPE_KINDS:
        return None
    background = normalize_background(asset.get("background"))
    return {
        "type": "shape",
        "shape": shape,
        "background": background or dict(DEFAULT_SHAPE_BACKGROUND),
    }


def _normalize_html(asset: Mapping[str, Any]) -> dict[str, Any]:
    html = asset.get("html")
    css = asset.get("css")
    return {
        "type": "html",
        "html": html if isinstance(html, str) else "",
        "css": css if isinstance(css, str) else "",
    }


def normalize_asset(asset: Any) -> dict[str, Any] | None:
    """Return a fresh asset holding only its variant's fields, or None."""
    if not isinstance(asset, Mapping):
        return None

    asset_type = _resolve_type(asset)
    if asset_type is None:
        return None
    if asset_type == "text":
        return _normalize_text(asset)
    if asset_type in MEDIA_ASSET_TYPES:
        return _normalize_media(asset_type, asset)
    if asset_type == "shape":
        return _normalize_shape(asset)
    return _normalize_html(asset)


# =============================================================================
# Clips, tracks, document
# =============================================================================


def normalize_clip(clip: Any) -> dict[str, Any] | None:
    if not isinstance(clip, Mapping):
        return None

    asset = normalize_asset(clip.get("asset"))
    if asset is None:
        return None

    result: dict[str, Any] = {
        "asset": asset,
        "start": normalize_start(clip.get("start")),
        "length": normalize_length(clip.get("length")),
    }
    transition = normalize_transition(clip.get("transition"))
    if transition:
        result["transition"] = transition
    effect = normalize_effect(clip.get("effect"))
    if effect:
        result["effect"] = effect
    return result


def normalize_track(track: Any) -> dict[str, Any]:
    if not isinstance(track, Mapping):
        return {"clips": []}

    result = dict(track)
    clips = track.get("clips")
    if not isinstance(clips, list):
        result["clips"] = []
        return result

    normalized = [normalize_clip(clip) for clip in clips]
    result["clips"] = [clip for clip in normalized if clip is not None]
    dropped = len(clips) - len(result["clips"])
    if dropped:
        logger.debug(f"Dropped {dropped} unsalvageable clip(s) from track")
    return result


def sanitize(document: Any) -> dict[str, Any]:
    """Return a structurally valid copy of an arbitrary edit document."""
    doc = copy.deepcopy(document) if isinstance(document, Mapping) else {}
    doc = dict(doc)

    timeline = doc.get("timeline")
    timeline = dict(timeline) if isinstance(timeline, Mapping) else {}
    doc["timeline"] = timeline

    tracks = timeline.get("tracks")
    if not isinstance(tracks, list):
        timeline["tracks"] = []
        return doc

    timeline["tracks"] = [normalize_track(track) for track in tracks]
    return doc


def parse_edit_document(document: Mapping[str, Any]) -> EditDocument:
    """Validate a sanitized document into the typed edit model."""
    try:
        return EditDocument.model_validate(document)
    except PydanticValidationError as e:
        raise InvalidDocumentError(f"Invalid edit document: {e.errors()[0].get('msg')}") from e
