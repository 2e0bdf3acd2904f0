"""
Element models for the Jingle description tree that advertises sources.

Each model mirrors one element of the tree exchanged between the conference focus
and the participants:

    <content name="video">
      <description media="video">
        <source ssrc="1" injected="true">
          <parameter name="msid" value="..."/>
          <ssrc-info owner="..."/>
        </source>
        <ssrc-group semantics="FID">
          <source ssrc="1"/>
          <source ssrc="2"/>
        </ssrc-group>
      </description>
    </content>

The models can be rendered to and parsed from XML, or (de)serialized as JSON
through mashumaro.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, fields
from typing import Annotated, ClassVar, TypeVar

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin
from mashumaro.types import Alias

JINGLE_NS = "urn:xmpp:jingle:1"
RTP_NS = "urn:xmpp:jingle:apps:rtp:1"
SSMA_NS = "urn:xmpp:jingle:apps:rtp:ssma:0"
JITMEET_NS = "http://jitsi.org/jitmeet"

MAX_SSRC = 0xFFFFFFFF

ET.register_namespace("", JINGLE_NS)
ET.register_namespace("rtp", RTP_NS)
ET.register_namespace("ssma", SSMA_NS)
ET.register_namespace("jitmeet", JITMEET_NS)

_ExtensionT = TypeVar("_ExtensionT", bound="PacketExtension")


def _qname(namespace: str, element: str) -> str:
    return f"{{{namespace}}}{element}"


def _parse_bool(value: str | None) -> bool:
    return value is not None and value.strip().lower() in ("true", "1")


@dataclass
class PacketExtension(DataClassORJSONMixin, ABC):
    """Base class for elements of the description tree."""

    ELEMENT: ClassVar[str] = ""
    NAMESPACE: ClassVar[str] = ""

    @classmethod
    def qname(cls) -> str:
        """Return the namespace-qualified element name."""
        return _qname(cls.NAMESPACE, cls.ELEMENT)

    def children(self) -> Iterator[PacketExtension]:
        """Iterate over the child elements in document order."""
        for child_field in fields(self):
            value = getattr(self, child_field.name)
            if isinstance(value, PacketExtension):
                yield value
            elif isinstance(value, list):
                yield from (item for item in value if isinstance(item, PacketExtension))

    def add_child_extension(self, child: PacketExtension) -> None:
        """Append a child element."""
        raise TypeError(f"<{self.ELEMENT}> does not accept <{child.ELEMENT}> children")

    def get_child_extensions_of_type(self, child_type: type[_ExtensionT]) -> list[_ExtensionT]:
        """Return all children of the given type, in document order."""
        return [child for child in self.children() if isinstance(child, child_type)]

    def get_first_child_of_type(self, child_type: type[_ExtensionT]) -> _ExtensionT | None:
        """Return the first child of the given type, or None."""
        for child in self.children():
            if isinstance(child, child_type):
                return child
        return None

    @abstractmethod
    def to_xml(self) -> ET.Element:
        """Render this element as an XML element."""

    def to_xml_string(self) -> str:
        """Render this element as an XML string."""
        return ET.tostring(self.to_xml(), encoding="unicode")


@dataclass
class ParameterPacketExtension(PacketExtension):
    """A name/value parameter of a source, e.g. msid or cname."""

    ELEMENT: ClassVar[str] = "parameter"
    NAMESPACE: ClassVar[str] = SSMA_NS

    name: str
    """Parameter name."""
    value: str | None = None
    """Parameter value."""

    def to_xml(self) -> ET.Element:
        """Render as a <parameter/> element."""
        element = ET.Element(self.qname(), name=self.name)
        if self.value is not None:
            element.set("value", self.value)
        return element

    @classmethod
    def from_xml(cls, element: ET.Element) -> ParameterPacketExtension:
        """Parse a <parameter/> element."""
        return cls(name=element.get("name", ""), value=element.get("value"))

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True


@dataclass
class SsrcInfoPacketExtension(PacketExtension):
    """Annotation recording which participant owns a source."""

    ELEMENT: ClassVar[str] = "ssrc-info"
    NAMESPACE: ClassVar[str] = JITMEET_NS

    owner: str | None = None
    """Identity of the owning participant."""

    def to_xml(self) -> ET.Element:
        """Render as an <ssrc-info/> element."""
        element = ET.Element(self.qname())
        if self.owner is not None:
            element.set("owner", self.owner)
        return element

    @classmethod
    def from_xml(cls, element: ET.Element) -> SsrcInfoPacketExtension:
        """Parse an <ssrc-info/> element."""
        return cls(owner=element.get("owner"))

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True


@dataclass
class SourcePacketExtension(PacketExtension):
    """A single SSRC, either described in full or referenced from an ssrc-group."""

    ELEMENT: ClassVar[str] = "source"
    NAMESPACE: ClassVar[str] = SSMA_NS

    ssrc: int
    """Synchronization source identifier (unsigned 32 bit)."""
    injected: bool = False
    """True if the source was added by the server rather than advertised by a client."""
    parameters: list[ParameterPacketExtension] = field(default_factory=list)
    """Parameters such as msid and cname."""
    ssrc_info: Annotated[SsrcInfoPacketExtension | None, Alias("ssrc-info")] = None
    """Owner annotation."""

    def __post_init__(self) -> None:
        """Validate field values."""
        if not 0 <= self.ssrc <= MAX_SSRC:
            raise ValueError(f"ssrc must be in range 0-{MAX_SSRC}, got {self.ssrc}")

    def add_child_extension(self, child: PacketExtension) -> None:
        """Append a parameter or set the owner annotation."""
        if isinstance(child, ParameterPacketExtension):
            self.parameters.append(child)
        elif isinstance(child, SsrcInfoPacketExtension):
            self.ssrc_info = child
        else:
            super().add_child_extension(child)

    def get_parameter(self, name: str) -> str | None:
        """Return the value of the first parameter with the given name."""
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter.value
        return None

    def to_xml(self) -> ET.Element:
        """Render as a <source/> element."""
        element = ET.Element(self.qname(), ssrc=str(self.ssrc))
        if self.injected:
            element.set("injected", "true")
        for child in self.children():
            element.append(child.to_xml())
        return element

    @classmethod
    def from_xml(cls, element: ET.Element) -> SourcePacketExtension:
        """
        Parse a <source/> element.

        Raises:
            ValueError: If the ssrc attribute is missing or not a valid SSRC.
        """
        ssrc = element.get("ssrc")
        if ssrc is None:
            raise ValueError("<source/> element without ssrc attribute")
        extension = cls(ssrc=int(ssrc), injected=_parse_bool(element.get("injected")))
        for child in element:
            if child.tag == ParameterPacketExtension.qname():
                extension.parameters.append(ParameterPacketExtension.from_xml(child))
            elif child.tag == SsrcInfoPacketExtension.qname():
                extension.ssrc_info = SsrcInfoPacketExtension.from_xml(child)
        return extension

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True
        serialize_by_alias = True


@dataclass
class SourceGroupPacketExtension(PacketExtension):
    """An ssrc-group: ordered SSRC references sharing one semantics."""

    ELEMENT: ClassVar[str] = "ssrc-group"
    NAMESPACE: ClassVar[str] = SSMA_NS

    semantics: str
    """Group semantics token, e.g. SIM or FID."""
    sources: list[SourcePacketExtension] = field(default_factory=list)
    """Referenced sources, order is significant."""

    def add_child_extension(self, child: PacketExtension) -> None:
        """Append a source reference."""
        if isinstance(child, SourcePacketExtension):
            self.sources.append(child)
        else:
            super().add_child_extension(child)

    def add_sources(self, sources: Iterable[SourcePacketExtension]) -> None:
        """Append several source references."""
        self.sources.extend(sources)

    def to_xml(self) -> ET.Element:
        """Render as an <ssrc-group/> element."""
        element = ET.Element(self.qname(), semantics=self.semantics)
        for source in self.sources:
            element.append(source.to_xml())
        return element

    @classmethod
    def from_xml(cls, element: ET.Element) -> SourceGroupPacketExtension:
        """Parse an <ssrc-group/> element."""
        return cls(
            semantics=element.get("semantics", ""),
            sources=[
                SourcePacketExtension.from_xml(child)
                for child in element.iterfind(SourcePacketExtension.qname())
            ],
        )


@dataclass
class RtpDescriptionPacketExtension(PacketExtension):
    """The <description/> of a content: its sources followed by its ssrc-groups."""

    ELEMENT: ClassVar[str] = "description"
    NAMESPACE: ClassVar[str] = RTP_NS

    media: str | None = None
    """Media type of the description."""
    sources: list[SourcePacketExtension] = field(default_factory=list)
    """Sources in this description."""
    ssrc_groups: Annotated[list[SourceGroupPacketExtension], Alias("ssrc-groups")] = field(
        default_factory=list
    )
    """Groups in this description."""

    def add_child_extension(self, child: PacketExtension) -> None:
        """Append a source or an ssrc-group."""
        if isinstance(child, SourcePacketExtension):
            self.sources.append(child)
        elif isinstance(child, SourceGroupPacketExtension):
            self.ssrc_groups.append(child)
        else:
            super().add_child_extension(child)

    def to_xml(self) -> ET.Element:
        """Render as a <description/> element."""
        element = ET.Element(self.qname())
        if self.media is not None:
            element.set("media", self.media)
        for child in self.children():
            element.append(child.to_xml())
        return element

    @classmethod
    def from_xml(cls, element: ET.Element) -> RtpDescriptionPacketExtension:
        """Parse a <description/> element, ignoring unknown children."""
        description = cls(media=element.get("media"))
        for child in element:
            if child.tag == SourcePacketExtension.qname():
                description.sources.append(SourcePacketExtension.from_xml(child))
            elif child.tag == SourceGroupPacketExtension.qname():
                description.ssrc_groups.append(SourceGroupPacketExtension.from_xml(child))
        return description

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True
        serialize_by_alias = True


@dataclass
class ContentPacketExtension(PacketExtension):
    """A Jingle <content/>, one per media type."""

    ELEMENT: ClassVar[str] = "content"
    NAMESPACE: ClassVar[str] = JINGLE_NS

    name: str
    """Content name, the media type for source descriptions."""
    description: RtpDescriptionPacketExtension | None = None
    """RTP description holding the sources."""

    def __post_init__(self) -> None:
        """Validate field values."""
        if not self.name:
            raise ValueError("content name cannot be empty")

    def add_child_extension(self, child: PacketExtension) -> None:
        """Set the description."""
        if isinstance(child, RtpDescriptionPacketExtension):
            self.description = child
        else:
            super().add_child_extension(child)

    def to_xml(self) -> ET.Element:
        """Render as a <content/> element."""
        element = ET.Element(self.qname(), name=self.name)
        if self.description is not None:
            element.append(self.description.to_xml())
        return element

    @classmethod
    def from_xml(cls, element: ET.Element) -> ContentPacketExtension:
        """Parse a <content/> element."""
        description = element.find(RtpDescriptionPacketExtension.qname())
        return cls(
            name=element.get("name", ""),
            description=(
                RtpDescriptionPacketExtension.from_xml(description)
                if description is not None
                else None
            ),
        )

    class Config(BaseConfig):
        """Config for parsing json messages."""

        omit_none = True


def serialize_contents(contents: Iterable[ContentPacketExtension]) -> str:
    """Render contents as a <jingle/> XML document."""
    root = ET.Element(_qname(JINGLE_NS, "jingle"))
    for content in contents:
        root.append(content.to_xml())
    return ET.tostring(root, encoding="unicode")


def parse_contents(data: str | bytes) -> list[ContentPacketExtension]:
    """
    Parse the contents of a <jingle/> document, or of a single <content/> element.

    Raises:
        xml.etree.ElementTree.ParseError: If the data is not well-formed XML.
        ValueError: If a source carries an invalid ssrc.
    """
    root = ET.fromstring(data)
    if root.tag == ContentPacketExtension.qname():
        return [ContentPacketExtension.from_xml(root)]
    return [
        ContentPacketExtension.from_xml(element)
        for element in root.iterfind(ContentPacketExtension.qname())
    ]
