"""Models for conference sources and the Jingle elements describing them."""

from __future__ import annotations

__all__ = [
    "ContentPacketExtension",
    "EndpointSourceSet",
    "MediaType",
    "ParameterPacketExtension",
    "RtpDescriptionPacketExtension",
    "Source",
    "SourceGroupPacketExtension",
    "SourcePacketExtension",
    "SsrcGroup",
    "SsrcGroupSemantics",
    "SsrcInfoPacketExtension",
    "jingle",
    "parse_contents",
    "serialize_contents",
    "source",
    "types",
]

from . import jingle, source, types
from .jingle import (
    ContentPacketExtension,
    ParameterPacketExtension,
    RtpDescriptionPacketExtension,
    SourceGroupPacketExtension,
    SourcePacketExtension,
    SsrcInfoPacketExtension,
    parse_contents,
    serialize_contents,
)
from .source import EndpointSourceSet, Source, SsrcGroup
from .types import MediaType, SsrcGroupSemantics
