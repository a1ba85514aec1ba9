from viralyzer.schemas.render import (
    RenderCallbackPayload,
    RenderCallbackResponse,
    RenderJobResponse,
    RenderStatusResponse,
    RenderSubmitRequest,
    RenderSubmitResponse,
)
from viralyzer.schemas.timeline import Asset, Clip, EditDocument, Output, Timeline, Track

__all__ = [
    "RenderSubmitRequest",
    "RenderSubmitResponse",
    "RenderCallbackPayload",
    "RenderCallbackResponse",
    "RenderJobResponse",
    "RenderStatusResponse",
    "EditDocument",
    "Output",
    "Timeline",
    "Track",
    "Clip",
    "Asset",
]
