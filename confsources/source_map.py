"""Conference-wide bookkeeping of sources, keyed by the endpoint that owns them."""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable, Iterator, Mapping
from typing import Any, NoReturn

import orjson

from .models.jingle import (
    ContentPacketExtension,
    SourceGroupPacketExtension,
    SourcePacketExtension,
)
from .models.source import (
    EndpointSourceSet,
    Source,
    SsrcGroup,
    group_sort_key,
    source_sort_key,
)
from .models.types import MediaType

logger = logging.getLogger(__name__)

Owner = Hashable | None
"""Identity of the endpoint owning a set of sources. None means no owner is recorded."""


class UnsupportedOperationError(AttributeError):
    """Raised when trying to modify a read-only view of a ConferenceSourceMap."""


class ConferenceSourceMapView(Mapping[Owner, EndpointSourceSet]):
    """
    Read access to sources mapped by the endpoint that owns them.

    This is the interface shared by the mutable `ConferenceSourceMap` and its
    read-only view. It exposes the standard `Mapping` interface along with
    helpers that render the sources as Jingle contents.
    """

    _endpoint_source_sets: dict[Owner, EndpointSourceSet]
    """The sources mapped by endpoint."""

    def __init__(self, endpoint_source_sets: dict[Owner, EndpointSourceSet]) -> None:
        """Wrap the given mapping without copying it."""
        self._endpoint_source_sets = endpoint_source_sets

    def __getitem__(self, owner: Owner) -> EndpointSourceSet:
        return self._endpoint_source_sets[owner]

    def __iter__(self) -> Iterator[Owner]:
        return iter(self._endpoint_source_sets)

    def __len__(self) -> int:
        return len(self._endpoint_source_sets)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._endpoint_source_sets!r})"

    def to_jingle(self) -> list[ContentPacketExtension]:
        """
        Describe all sources as a list of contents, one per media type.

        Sources of different endpoints share the content of their media type, and each
        source is annotated with its owner.
        """
        contents: dict[MediaType, ContentPacketExtension] = {}
        for owner, endpoint_source_set in self._endpoint_source_sets.items():
            endpoint_source_set.add_to_jingle(contents, owner)
        return list(contents.values())

    def create_source_packet_extensions(self, media_type: MediaType) -> list[SourcePacketExtension]:
        """Return owner-annotated source elements of all endpoints for one media type."""
        return [
            source.to_packet_extension(owner)
            for owner, endpoint_source_set in self._endpoint_source_sets.items()
            for source in sorted(endpoint_source_set.sources, key=source_sort_key)
            if source.media_type == media_type
        ]

    def create_source_group_packet_extensions(
        self, media_type: MediaType
    ) -> list[SourceGroupPacketExtension]:
        """Return the ssrc-group elements of all endpoints for one media type."""
        return [
            ssrc_group.to_packet_extension()
            for endpoint_source_set in self._endpoint_source_sets.values()
            for ssrc_group in sorted(endpoint_source_set.ssrc_groups, key=group_sort_key)
            if endpoint_source_set.media_type_of(ssrc_group) == media_type
        ]

    def copy(self) -> ConferenceSourceMap:
        """Return a mutable shallow copy. The endpoint source sets themselves are immutable."""
        return ConferenceSourceMap(self._endpoint_source_sets)

    def to_dict(self) -> dict[str | None, dict[str, Any]]:
        """Return the sources of every endpoint as a dict, for debugging output."""
        return {
            None if owner is None else str(owner): endpoint_source_set.to_dict()
            for owner, endpoint_source_set in self._endpoint_source_sets.items()
        }

    def to_json(self) -> bytes:
        """Return `to_dict()` serialized as JSON."""
        return orjson.dumps(self.to_dict(), option=orjson.OPT_NON_STR_KEYS)


class UnmodifiableConferenceSourceMap(ConferenceSourceMapView):
    """
    A read-only view of a `ConferenceSourceMap`.

    The view shares the mapping of the map it was created for, so it always reflects
    the current state without copying. It has no mutating methods; accessing any of
    the `ConferenceSourceMap` mutators raises `UnsupportedOperationError`.
    """

    _MUTATORS = frozenset({"add", "remove", "remove_owner", "remove_injected"})

    def __getattr__(self, name: str) -> NoReturn:
        if name in self._MUTATORS:
            raise UnsupportedOperationError(f"{name}() not supported in unmodifiable view")
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")


class ConferenceSourceMap(ConferenceSourceMapView):
    """
    A container for the sources of multiple endpoints, mapped by the endpoint's ID.

    This could contain the sources of an entire conference, or a subset. The map is
    not thread safe: it must be mutated by a single owner. Readers in other contexts
    should be handed `unmodifiable` instead.
    """

    _unmodifiable: UnmodifiableConferenceSourceMap
    """Read-only view sharing this map's storage."""

    def __init__(
        self,
        endpoint_source_sets: (
            Mapping[Owner, EndpointSourceSet] | Iterable[tuple[Owner, EndpointSourceSet]] | None
        ) = None,
    ) -> None:
        """Create a map from a mapping or from (owner, EndpointSourceSet) pairs."""
        super().__init__(dict(endpoint_source_sets or {}))
        self._unmodifiable = UnmodifiableConferenceSourceMap(self._endpoint_source_sets)

    @classmethod
    def from_endpoint(
        cls, owner: Owner, endpoint_source_set: EndpointSourceSet
    ) -> ConferenceSourceMap:
        """Create a map holding a single endpoint's sources."""
        return cls({owner: endpoint_source_set})

    @classmethod
    def from_jingle(
        cls, owner: Owner, contents: Iterable[ContentPacketExtension]
    ) -> ConferenceSourceMap:
        """Create a map holding the sources parsed from `contents`, all assigned to `owner`."""
        return cls.from_endpoint(owner, EndpointSourceSet.from_jingle(contents))

    @classmethod
    def from_source(cls, owner: Owner, source: Source) -> ConferenceSourceMap:
        """Create a map holding a single source."""
        return cls.from_endpoint(owner, EndpointSourceSet([source]))

    @classmethod
    def from_sources(
        cls, owner: Owner, sources: Iterable[Source], ssrc_groups: Iterable[SsrcGroup] = ()
    ) -> ConferenceSourceMap:
        """Create a map holding one endpoint's sources and groups."""
        return cls.from_endpoint(owner, EndpointSourceSet(sources, ssrc_groups))

    @property
    def unmodifiable(self) -> UnmodifiableConferenceSourceMap:
        """A read-only view of this map."""
        return self._unmodifiable

    def add(self, other: Mapping[Owner, EndpointSourceSet]) -> None:
        """Add the sources of another map to this one, merging per endpoint."""
        for owner, endpoint_source_set in list(other.items()):
            existing = self._endpoint_source_sets.get(owner)
            if existing is None:
                logger.debug("Adding sources for new endpoint %s", owner)
                self._endpoint_source_sets[owner] = endpoint_source_set
            else:
                self._endpoint_source_sets[owner] = existing.union(endpoint_source_set)

    def remove(self, other: Mapping[Owner, EndpointSourceSet]) -> None:
        """
        Remove the sources of another map from this one.

        An endpoint left without sources and groups is removed entirely. Sources or
        endpoints that are not present are ignored. Groups are only removed when they
        are listed in `other`, even if all of their sources are removed.
        """
        for owner, endpoint_source_set in list(other.items()):
            existing = self._endpoint_source_sets.get(owner)
            if existing is None:
                continue
            result = existing.subtract(endpoint_source_set)
            if result.is_empty():
                logger.debug("No sources left for endpoint %s, removing it", owner)
                del self._endpoint_source_sets[owner]
            else:
                self._endpoint_source_sets[owner] = result

    def remove_owner(self, owner: Owner) -> EndpointSourceSet | None:
        """Remove all sources of one endpoint, returning them if there were any."""
        return self._endpoint_source_sets.pop(owner, None)

    def remove_injected(self) -> ConferenceSourceMap:
        """Remove all injected sources in place, dropping endpoints left empty. Returns self."""
        for owner, endpoint_source_set in list(self._endpoint_source_sets.items()):
            without_injected = endpoint_source_set.without_injected()
            if without_injected.is_empty():
                logger.debug("Only injected sources for endpoint %s, removing it", owner)
                del self._endpoint_source_sets[owner]
            else:
                self._endpoint_source_sets[owner] = without_injected
        return self
