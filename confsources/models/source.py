"""
Source values for a single conference endpoint.

A `Source` describes one SSRC, an `SsrcGroup` relates several SSRCs, and an
`EndpointSourceSet` holds everything advertised by (or injected for) one
participant. All of them are immutable values: every parse, union or
subtraction builds a new instance.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from typing import Any, ClassVar

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin

from .jingle import (
    MAX_SSRC,
    ContentPacketExtension,
    ParameterPacketExtension,
    RtpDescriptionPacketExtension,
    SourceGroupPacketExtension,
    SourcePacketExtension,
    SsrcInfoPacketExtension,
)
from .types import MediaType, SsrcGroupSemantics

logger = logging.getLogger(__name__)

MSID_PARAMETER = "msid"
CNAME_PARAMETER = "cname"


def _validate_ssrc(ssrc: int) -> None:
    if not 0 <= ssrc <= MAX_SSRC:
        raise ValueError(f"ssrc must be in range 0-{MAX_SSRC}, got {ssrc}")


@dataclass(frozen=True, order=True)
class Source(DataClassORJSONMixin):
    """A single media source (SSRC) and its identity."""

    ssrc: int
    """Synchronization source identifier (unsigned 32 bit)."""
    media_type: MediaType
    """Media kind of the source."""
    msid: str | None = None
    """Stream/track correlation tag."""
    cname: str | None = None
    """Canonical name used for synchronization."""
    injected: bool = False
    """True if the server added this source rather than the client advertising it."""

    def __post_init__(self) -> None:
        """Validate field values."""
        _validate_ssrc(self.ssrc)

    @classmethod
    def from_packet_extension(
        cls, media_type: MediaType, extension: SourcePacketExtension
    ) -> Source:
        """Parse a source element. Only the first msid and cname parameters are used."""
        return cls(
            ssrc=extension.ssrc,
            media_type=media_type,
            msid=extension.get_parameter(MSID_PARAMETER),
            cname=extension.get_parameter(CNAME_PARAMETER),
            injected=extension.injected,
        )

    def to_packet_extension(self, owner: Hashable | None = None) -> SourcePacketExtension:
        """Render as a source element, annotated with `owner` if one is given."""
        extension = SourcePacketExtension(ssrc=self.ssrc, injected=self.injected)
        if self.msid is not None:
            extension.add_child_extension(ParameterPacketExtension(MSID_PARAMETER, self.msid))
        if self.cname is not None:
            extension.add_child_extension(ParameterPacketExtension(CNAME_PARAMETER, self.cname))
        if owner is not None:
            extension.add_child_extension(SsrcInfoPacketExtension(owner=str(owner)))
        return extension

    class Config(BaseConfig):
        """Config for compact json output."""

        omit_none = True
        omit_default = True


@dataclass(frozen=True, order=True)
class SsrcGroup(DataClassORJSONMixin):
    """
    An ordered group of SSRCs with a common semantics.

    The order of `ssrcs` carries meaning (for FID the first SSRC is the primary and
    the second its retransmission), so it is kept exactly and duplicates are not
    removed. A group has no media type of its own; it takes the media type of the
    sources it references when serialized as part of an `EndpointSourceSet`.
    """

    semantics: SsrcGroupSemantics
    """Relationship between the SSRCs."""
    ssrcs: tuple[int, ...]
    """Grouped SSRCs in their significant order. Any sequence is accepted."""

    def __post_init__(self) -> None:
        """Store the SSRCs as a tuple and validate them."""
        object.__setattr__(self, "ssrcs", tuple(self.ssrcs))
        for ssrc in self.ssrcs:
            _validate_ssrc(ssrc)

    @classmethod
    def from_packet_extension(cls, extension: SourceGroupPacketExtension) -> SsrcGroup:
        """
        Parse an ssrc-group element.

        Raises:
            KeyError: If the semantics are not recognized.
        """
        return cls(
            SsrcGroupSemantics.from_string(extension.semantics),
            tuple(source.ssrc for source in extension.sources),
        )

    def to_packet_extension(self) -> SourceGroupPacketExtension:
        """Render as an ssrc-group element referencing bare SSRCs."""
        extension = SourceGroupPacketExtension(semantics=str(self.semantics))
        extension.add_sources(SourcePacketExtension(ssrc=ssrc) for ssrc in self.ssrcs)
        return extension


def source_sort_key(source: Source) -> tuple[int, str]:
    """Sort key ordering sources by ssrc."""
    return source.ssrc, source.media_type.value


def group_sort_key(group: SsrcGroup) -> tuple[str, tuple[int, ...]]:
    """Sort key ordering groups by semantics, then ssrcs."""
    return group.semantics.value, group.ssrcs


def _get_or_create_description(
    contents: dict[MediaType, ContentPacketExtension], media_type: MediaType
) -> RtpDescriptionPacketExtension:
    content = contents.get(media_type)
    if content is None:
        content = ContentPacketExtension(name=media_type.value)
        contents[media_type] = content
    description = content.description
    if description is None:
        description = RtpDescriptionPacketExtension(media=media_type.value)
        content.add_child_extension(description)
    return description


@dataclass(frozen=True, init=False)
class EndpointSourceSet:
    """The sources and ssrc-groups of a single endpoint."""

    EMPTY: ClassVar[EndpointSourceSet]

    sources: frozenset[Source]
    ssrc_groups: frozenset[SsrcGroup]

    def __init__(
        self, sources: Iterable[Source] = (), ssrc_groups: Iterable[SsrcGroup] = ()
    ) -> None:
        """Create a set, collapsing duplicate sources and groups."""
        object.__setattr__(self, "sources", frozenset(sources))
        object.__setattr__(self, "ssrc_groups", frozenset(ssrc_groups))

    def is_empty(self) -> bool:
        """Return True if there are neither sources nor groups."""
        return not self.sources and not self.ssrc_groups

    def __bool__(self) -> bool:
        """Return True if the set is not empty."""
        return not self.is_empty()

    @property
    def ssrcs(self) -> frozenset[int]:
        """All SSRCs of the sources in this set."""
        return frozenset(source.ssrc for source in self.sources)

    @property
    def has_audio(self) -> bool:
        """True if the set contains at least one audio source."""
        return any(source.media_type == MediaType.AUDIO for source in self.sources)

    @property
    def has_video(self) -> bool:
        """True if the set contains at least one video source."""
        return any(source.media_type == MediaType.VIDEO for source in self.sources)

    def union(self, other: EndpointSourceSet) -> EndpointSourceSet:
        """Return the union of the sources and of the groups of both sets."""
        return EndpointSourceSet(self.sources | other.sources, self.ssrc_groups | other.ssrc_groups)

    def subtract(self, other: EndpointSourceSet) -> EndpointSourceSet:
        """
        Return this set without the sources and groups of `other`.

        Sources and groups are subtracted independently: a group referencing a
        removed source stays unless the group itself is in `other`.
        """
        return EndpointSourceSet(self.sources - other.sources, self.ssrc_groups - other.ssrc_groups)

    def __add__(self, other: EndpointSourceSet) -> EndpointSourceSet:
        """Return the union of both sets."""
        return self.union(other)

    def __sub__(self, other: EndpointSourceSet) -> EndpointSourceSet:
        """Return this set without the contents of `other`."""
        return self.subtract(other)

    def without_injected(self) -> EndpointSourceSet:
        """Return a copy without injected sources. Groups are kept as they are."""
        return EndpointSourceSet(
            (source for source in self.sources if not source.injected), self.ssrc_groups
        )

    def media_type_of(self, group: SsrcGroup) -> MediaType:
        """
        Resolve the media type that `group` is serialized under.

        This is the media type of the first SSRC of the group that matches a source in
        this set. When none matches it falls back to the media type of the first
        content that `to_jingle` builds for this set, or video for a set without
        sources.
        """
        return self._resolve_media_type(group, self._media_types_by_ssrc())

    def _media_types_by_ssrc(self) -> dict[int, MediaType]:
        media_types: dict[int, MediaType] = {}
        for source in sorted(self.sources, key=source_sort_key):
            media_types.setdefault(source.ssrc, source.media_type)
        return media_types

    def _resolve_media_type(
        self, group: SsrcGroup, media_types: dict[int, MediaType]
    ) -> MediaType:
        for ssrc in group.ssrcs:
            if ssrc in media_types:
                return media_types[ssrc]
        fallback = next(iter(media_types.values()), MediaType.VIDEO)
        logger.debug(
            "No source matches %s group %s, attaching it to %s",
            group.semantics,
            list(group.ssrcs),
            fallback,
        )
        return fallback

    @classmethod
    def from_jingle(cls, contents: Iterable[ContentPacketExtension]) -> EndpointSourceSet:
        """
        Parse the sources and groups of all contents into a single set.

        Owner annotations in the contents are ignored.

        Raises:
            ValueError: If a content name is not a known media type.
            KeyError: If a group has unrecognized semantics.
        """
        sources: set[Source] = set()
        ssrc_groups: set[SsrcGroup] = set()
        for content in contents:
            description = content.get_first_child_of_type(RtpDescriptionPacketExtension)
            if description is None:
                continue
            media_type = MediaType(content.name.lower())
            sources.update(
                Source.from_packet_extension(media_type, extension)
                for extension in description.get_child_extensions_of_type(SourcePacketExtension)
            )
            ssrc_groups.update(
                SsrcGroup.from_packet_extension(extension)
                for extension in description.get_child_extensions_of_type(
                    SourceGroupPacketExtension
                )
            )
        return cls(sources, ssrc_groups)

    def to_jingle(self, owner: Hashable | None = None) -> list[ContentPacketExtension]:
        """Render as one content per media type, annotating sources with `owner`."""
        contents: dict[MediaType, ContentPacketExtension] = {}
        self.add_to_jingle(contents, owner)
        return list(contents.values())

    def add_to_jingle(
        self, contents: dict[MediaType, ContentPacketExtension], owner: Hashable | None = None
    ) -> None:
        """Add the sources and groups of this set to existing contents, creating missing ones."""
        for source in sorted(self.sources, key=source_sort_key):
            description = _get_or_create_description(contents, source.media_type)
            description.add_child_extension(source.to_packet_extension(owner))
        media_types = self._media_types_by_ssrc()
        for group in sorted(self.ssrc_groups, key=group_sort_key):
            description = _get_or_create_description(
                contents, self._resolve_media_type(group, media_types)
            )
            description.add_child_extension(group.to_packet_extension())

    def to_dict(self) -> dict[str, Any]:
        """Return a compact dict for debugging output."""
        return {
            "sources": [source.to_dict() for source in sorted(self.sources, key=source_sort_key)],
            "groups": [group.to_dict() for group in sorted(self.ssrc_groups, key=group_sort_key)],
        }


EndpointSourceSet.EMPTY = EndpointSourceSet()
