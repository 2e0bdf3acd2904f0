"""Bookkeeping of the media sources in a conference and their Jingle description."""

from .models import (
    EndpointSourceSet,
    MediaType,
    Source,
    SsrcGroup,
    SsrcGroupSemantics,
)
from .source_map import (
    ConferenceSourceMap,
    ConferenceSourceMapView,
    UnmodifiableConferenceSourceMap,
    UnsupportedOperationError,
)

__all__ = [
    "ConferenceSourceMap",
    "ConferenceSourceMapView",
    "EndpointSourceSet",
    "MediaType",
    "Source",
    "SsrcGroup",
    "SsrcGroupSemantics",
    "UnmodifiableConferenceSourceMap",
    "UnsupportedOperationError",
]
