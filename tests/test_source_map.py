from __future__ import annotations

import orjson
import pytest

from confsources.models.jingle import (
    RtpDescriptionPacketExtension,
    SourceGroupPacketExtension,
    SourcePacketExtension,
    SsrcInfoPacketExtension,
)
from confsources.models.source import EndpointSourceSet, Source, SsrcGroup
from confsources.models.types import MediaType, SsrcGroupSemantics
from confsources.source_map import (
    ConferenceSourceMap,
    UnmodifiableConferenceSourceMap,
    UnsupportedOperationError,
)

ENDPOINT1 = "jid1"
ENDPOINT1_SOURCE_SET = EndpointSourceSet(
    {
        Source(1, MediaType.VIDEO),
        Source(2, MediaType.VIDEO),
        Source(3, MediaType.AUDIO, injected=True),
    },
    {SsrcGroup(SsrcGroupSemantics.FID, [1, 2])},
)
ENDPOINT1_ADDITIONAL_SOURCE_SET = EndpointSourceSet(
    {
        # The duplicates should be removed
        Source(1, MediaType.VIDEO),
        Source(2, MediaType.VIDEO),
        Source(3, MediaType.AUDIO, injected=True),
        Source(4, MediaType.VIDEO),
        Source(5, MediaType.VIDEO),
        Source(6, MediaType.AUDIO),
    },
    {SsrcGroup(SsrcGroupSemantics.FID, [4, 5])},
)
ENDPOINT1_COMBINED_SOURCE_SET = ENDPOINT1_SOURCE_SET + ENDPOINT1_ADDITIONAL_SOURCE_SET

ENDPOINT2 = "jid2"
ENDPOINT2_SOURCE_SET = EndpointSourceSet(
    {
        Source(101, MediaType.VIDEO),
        Source(102, MediaType.VIDEO),
        Source(103, MediaType.AUDIO),
    },
    {SsrcGroup(SsrcGroupSemantics.FID, [101, 102])},
)


def _full_map() -> ConferenceSourceMap:
    return ConferenceSourceMap(
        [(ENDPOINT1, ENDPOINT1_COMBINED_SOURCE_SET), (ENDPOINT2, ENDPOINT2_SOURCE_SET)]
    )


def test_constructor_from_mapping() -> None:
    source_map = ConferenceSourceMap({ENDPOINT1: ENDPOINT1_SOURCE_SET})
    assert len(source_map) == 1
    assert source_map[ENDPOINT1] == ENDPOINT1_SOURCE_SET


def test_constructor_from_pairs() -> None:
    source_map = ConferenceSourceMap(
        [(ENDPOINT1, ENDPOINT1_SOURCE_SET), (ENDPOINT2, ENDPOINT2_SOURCE_SET)]
    )
    assert len(source_map) == 2
    assert source_map[ENDPOINT1] == ENDPOINT1_SOURCE_SET
    assert source_map[ENDPOINT2] == ENDPOINT2_SOURCE_SET
    assert list(source_map) == [ENDPOINT1, ENDPOINT2]


def test_constructor_copies_mapping() -> None:
    backing = {ENDPOINT1: ENDPOINT1_SOURCE_SET}
    source_map = ConferenceSourceMap(backing)
    source_map.add(ConferenceSourceMap.from_endpoint(ENDPOINT2, ENDPOINT2_SOURCE_SET))
    assert ENDPOINT2 not in backing


def test_alternate_constructors() -> None:
    assert ConferenceSourceMap.from_endpoint(ENDPOINT1, ENDPOINT1_SOURCE_SET) == {
        ENDPOINT1: ENDPOINT1_SOURCE_SET
    }
    assert ConferenceSourceMap.from_source(None, Source(1, MediaType.AUDIO)) == {
        None: EndpointSourceSet([Source(1, MediaType.AUDIO)])
    }
    assert ConferenceSourceMap.from_sources(
        ENDPOINT1, ENDPOINT1_SOURCE_SET.sources, ENDPOINT1_SOURCE_SET.ssrc_groups
    ) == {ENDPOINT1: ENDPOINT1_SOURCE_SET}
    assert ConferenceSourceMap.from_jingle(
        ENDPOINT2, ENDPOINT2_SOURCE_SET.to_jingle("someone-else")
    ) == {ENDPOINT2: ENDPOINT2_SOURCE_SET}
    assert len(ConferenceSourceMap()) == 0


def test_add_without_overlap() -> None:
    source_map = ConferenceSourceMap.from_endpoint(ENDPOINT1, ENDPOINT1_SOURCE_SET)
    source_map.add(ConferenceSourceMap.from_endpoint(ENDPOINT2, ENDPOINT2_SOURCE_SET))

    assert len(source_map) == 2
    assert source_map[ENDPOINT1] == ENDPOINT1_SOURCE_SET
    assert source_map[ENDPOINT2] == ENDPOINT2_SOURCE_SET


def test_add_with_overlap() -> None:
    source_map = ConferenceSourceMap.from_endpoint(ENDPOINT1, ENDPOINT1_SOURCE_SET)
    source_map.add(
        ConferenceSourceMap(
            {ENDPOINT1: ENDPOINT1_ADDITIONAL_SOURCE_SET, ENDPOINT2: ENDPOINT2_SOURCE_SET}
        )
    )

    assert len(source_map) == 2
    assert source_map[ENDPOINT1] == ENDPOINT1_COMBINED_SOURCE_SET
    assert {source.ssrc for source in source_map[ENDPOINT1].sources} == {1, 2, 3, 4, 5, 6}
    assert source_map[ENDPOINT2] == ENDPOINT2_SOURCE_SET


def test_add_is_idempotent() -> None:
    other = ConferenceSourceMap.from_endpoint(ENDPOINT2, ENDPOINT2_SOURCE_SET)
    once = ConferenceSourceMap.from_endpoint(ENDPOINT1, ENDPOINT1_SOURCE_SET)
    once.add(other)
    twice = ConferenceSourceMap.from_endpoint(ENDPOINT1, ENDPOINT1_SOURCE_SET)
    twice.add(other)
    twice.add(other)

    assert once == twice


def test_remove_all_of_an_endpoints_sources() -> None:
    source_map = _full_map()
    source_map.remove(ConferenceSourceMap.from_endpoint(ENDPOINT2, ENDPOINT2_SOURCE_SET))

    assert len(source_map) == 1
    assert source_map[ENDPOINT1] == ENDPOINT1_COMBINED_SOURCE_SET
    assert source_map.get(ENDPOINT2) is None
    assert ENDPOINT2 not in source_map


def test_remove_some_of_an_endpoints_sources() -> None:
    source_map = _full_map()
    source_map.remove(ConferenceSourceMap.from_endpoint(ENDPOINT1, ENDPOINT1_SOURCE_SET))

    assert len(source_map) == 2
    assert source_map[ENDPOINT1] == EndpointSourceSet(
        {
            Source(4, MediaType.VIDEO),
            Source(5, MediaType.VIDEO),
            Source(6, MediaType.AUDIO),
        },
        {SsrcGroup(SsrcGroupSemantics.FID, [4, 5])},
    )
    assert source_map[ENDPOINT2] == ENDPOINT2_SOURCE_SET


def test_remove_nonexistent_sources() -> None:
    source_map = _full_map()
    source_map.remove(
        ConferenceSourceMap.from_sources(
            ENDPOINT1,
            [Source(12345, MediaType.VIDEO)],
            [SsrcGroup(SsrcGroupSemantics.FID, [12345])],
        )
    )

    assert source_map == _full_map()


def test_remove_nonexistent_endpoint() -> None:
    source_map = _full_map()
    source_map.remove(ConferenceSourceMap.from_endpoint("differentJid", ENDPOINT1_COMBINED_SOURCE_SET))

    assert len(source_map) == 2
    assert source_map == _full_map()


def test_remove_owner() -> None:
    source_map = _full_map()
    assert source_map.remove_owner(ENDPOINT2) == ENDPOINT2_SOURCE_SET
    assert source_map.remove_owner(ENDPOINT2) is None
    assert list(source_map) == [ENDPOINT1]


def test_remove_keeps_unlisted_groups() -> None:
    source_map = ConferenceSourceMap.from_endpoint(ENDPOINT2, ENDPOINT2_SOURCE_SET)
    source_map.remove(ConferenceSourceMap.from_sources(ENDPOINT2, ENDPOINT2_SOURCE_SET.sources))

    assert source_map[ENDPOINT2] == EndpointSourceSet(ssrc_groups=ENDPOINT2_SOURCE_SET.ssrc_groups)


def test_to_jingle() -> None:
    source_map = ConferenceSourceMap.from_endpoint(ENDPOINT1, ENDPOINT1_SOURCE_SET)
    contents = source_map.to_jingle()
    assert len(contents) == 2

    video_content = next(content for content in contents if content.name == "video")
    video = video_content.get_first_child_of_type(RtpDescriptionPacketExtension)
    assert video is not None
    video_sources = video.get_child_extensions_of_type(SourcePacketExtension)
    assert {Source.from_packet_extension(MediaType.VIDEO, s) for s in video_sources} == {
        Source(1, MediaType.VIDEO),
        Source(2, MediaType.VIDEO),
    }
    for source in video_sources:
        ssrc_info = source.get_first_child_of_type(SsrcInfoPacketExtension)
        assert ssrc_info is not None
        assert ssrc_info.owner == ENDPOINT1
    group = video.get_first_child_of_type(SourceGroupPacketExtension)
    assert group is not None
    assert SsrcGroup.from_packet_extension(group) == SsrcGroup(SsrcGroupSemantics.FID, [1, 2])

    audio_content = next(content for content in contents if content.name == "audio")
    audio = audio_content.get_first_child_of_type(RtpDescriptionPacketExtension)
    assert audio is not None
    audio_sources = audio.get_child_extensions_of_type(SourcePacketExtension)
    assert [Source.from_packet_extension(MediaType.AUDIO, s) for s in audio_sources] == [
        Source(3, MediaType.AUDIO, injected=True)
    ]
    for source in audio_sources:
        ssrc_info = source.get_first_child_of_type(SsrcInfoPacketExtension)
        assert ssrc_info is not None
        assert ssrc_info.owner == ENDPOINT1


def test_to_jingle_merges_endpoints() -> None:
    contents = _full_map().to_jingle()
    assert sorted(content.name for content in contents) == ["audio", "video"]

    video_content = next(content for content in contents if content.name == "video")
    assert video_content.description is not None
    owners = {
        source.ssrc: source.ssrc_info.owner
        for source in video_content.description.sources
        if source.ssrc_info is not None
    }
    assert owners == {1: ENDPOINT1, 2: ENDPOINT1, 4: ENDPOINT1, 5: ENDPOINT1, 101: ENDPOINT2, 102: ENDPOINT2}
    assert len(video_content.description.ssrc_groups) == 3


def test_to_jingle_without_owner() -> None:
    contents = ConferenceSourceMap.from_source(None, Source(1, MediaType.AUDIO)).to_jingle()
    [content] = contents
    assert content.description is not None
    assert content.description.sources[0].ssrc_info is None


def test_create_packet_extensions() -> None:
    source_map = _full_map()

    video_sources = source_map.create_source_packet_extensions(MediaType.VIDEO)
    assert [s.ssrc for s in video_sources] == [1, 2, 4, 5, 101, 102]
    assert all(s.ssrc_info is not None for s in video_sources)
    audio_sources = source_map.create_source_packet_extensions(MediaType.AUDIO)
    assert [s.ssrc for s in audio_sources] == [3, 6, 103]

    video_groups = source_map.create_source_group_packet_extensions(MediaType.VIDEO)
    assert [[s.ssrc for s in g.sources] for g in video_groups] == [[1, 2], [4, 5], [101, 102]]
    assert source_map.create_source_group_packet_extensions(MediaType.AUDIO) == []


def test_remove_injected() -> None:
    injected_only = EndpointSourceSet([Source(7, MediaType.AUDIO, injected=True)])
    source_map = ConferenceSourceMap({ENDPOINT1: ENDPOINT1_SOURCE_SET, ENDPOINT2: injected_only})

    assert source_map.remove_injected() is source_map
    assert len(source_map) == 1
    assert source_map[ENDPOINT1] == EndpointSourceSet(
        {Source(1, MediaType.VIDEO), Source(2, MediaType.VIDEO)},
        ENDPOINT1_SOURCE_SET.ssrc_groups,
    )


def test_copy() -> None:
    source_map = _full_map()
    copy = source_map.copy()
    copy.remove_owner(ENDPOINT1)

    assert len(source_map) == 2
    assert len(copy) == 1
    assert isinstance(source_map.unmodifiable.copy(), ConferenceSourceMap)


def test_unmodifiable() -> None:
    source_map = ConferenceSourceMap.from_endpoint(ENDPOINT1, ENDPOINT1_SOURCE_SET)
    unmodifiable = source_map.unmodifiable

    assert isinstance(unmodifiable, UnmodifiableConferenceSourceMap)
    assert unmodifiable is source_map.unmodifiable
    assert unmodifiable == source_map

    other = ConferenceSourceMap.from_endpoint(ENDPOINT2, ENDPOINT2_SOURCE_SET)
    with pytest.raises(UnsupportedOperationError):
        unmodifiable.add(other)  # type: ignore[attr-defined]
    with pytest.raises(UnsupportedOperationError):
        unmodifiable.remove(other)  # type: ignore[attr-defined]
    with pytest.raises(UnsupportedOperationError):
        unmodifiable.remove_owner(ENDPOINT1)  # type: ignore[attr-defined]
    with pytest.raises(UnsupportedOperationError):
        unmodifiable.remove_injected()  # type: ignore[attr-defined]
    with pytest.raises(TypeError):
        unmodifiable[ENDPOINT2] = ENDPOINT2_SOURCE_SET  # type: ignore[index]
    assert not hasattr(unmodifiable, "add")
    assert len(source_map) == 1

    # The view shares the map's state.
    source_map.add(other)
    assert unmodifiable[ENDPOINT2] == ENDPOINT2_SOURCE_SET
    assert len(unmodifiable.to_jingle()) == 2


def test_to_json() -> None:
    source_map = ConferenceSourceMap(
        {ENDPOINT2: ENDPOINT2_SOURCE_SET, None: EndpointSourceSet([Source(9, MediaType.AUDIO)])}
    )
    assert orjson.loads(source_map.to_json()) == {
        "jid2": {
            "sources": [
                {"ssrc": 101, "media_type": "video"},
                {"ssrc": 102, "media_type": "video"},
                {"ssrc": 103, "media_type": "audio"},
            ],
            "groups": [{"semantics": "FID", "ssrcs": [101, 102]}],
        },
        "null": {"sources": [{"ssrc": 9, "media_type": "audio"}], "groups": []},
    }


def test_remove_from_itself() -> None:
    source_map = _full_map()
    source_map.remove(source_map)
    assert len(source_map) == 0


def test_remove_own_unmodifiable_view() -> None:
    source_map = _full_map()
    source_map.remove(source_map.unmodifiable)
    assert len(source_map) == 0
    assert len(source_map.unmodifiable) == 0


def test_add_to_itself() -> None:
    source_map = _full_map()
    source_map.add(source_map.unmodifiable)
    assert source_map == _full_map()


def test_flat_extensions_follow_jingle_order() -> None:
    source_map = _full_map()
    for content in source_map.to_jingle():
        assert content.description is not None
        media_type = MediaType(content.name)
        assert source_map.create_source_packet_extensions(media_type) == content.description.sources
        assert (
            source_map.create_source_group_packet_extensions(media_type)
            == content.description.ssrc_groups
        )
