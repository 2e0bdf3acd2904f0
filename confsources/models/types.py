"""Models for enum types used when describing conference sources."""

from __future__ import annotations

from enum import Enum


class MediaType(str, Enum):
    """Media kind of a source, also used as the name of its content."""

    AUDIO = "audio"
    VIDEO = "video"

    def __str__(self) -> str:
        """Return the wire name of the media type."""
        return self.value


class SsrcGroupSemantics(str, Enum):
    """Relationship between the SSRCs of an ssrc-group."""

    SIM = "SIM"
    """Simulcast: the same media encoded at different qualities."""
    FID = "FID"
    """Flow identification, pairs a primary SSRC with its retransmission SSRC."""
    FEC_FR = "FEC-FR"
    """Forward error correction (RFC 5956)."""

    @classmethod
    def from_string(cls, text: str) -> SsrcGroupSemantics:
        """
        Parse semantics from their wire token, ignoring case.

        Raises:
            KeyError: If the token is not a known semantics.
        """
        token = text.upper()
        for semantics in cls:
            if semantics.value == token:
                return semantics
        raise KeyError(f"Unknown ssrc-group semantics: {text!r}")

    def __str__(self) -> str:
        """Return the canonical uppercase token."""
        return self.value
