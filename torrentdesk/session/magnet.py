"""Magnet URI parsing."""

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from .errors import InvalidMagnet

_BTIH_RE = re.compile(r"urn:btih:([a-f0-9]{40}|[a-z2-7]{32})", re.IGNORECASE)


@dataclass
class Magnet:
    """The parts of a magnet link the session cares about."""

    info_hash: str
    display_name: Optional[str] = None


def parse_magnet(uri: str) -> Magnet:
    """
    Parse a BitTorrent magnet URI.

    Args:
        uri: Magnet URI

    Returns:
        Magnet with the info hash as 40-character lowercase hex

    Raises:
        InvalidMagnet: If the URI is not a magnet link with a btih hash
    """
    uri = (uri or "").strip()
    parts = urlsplit(uri)
    if parts.scheme.lower() != "magnet":
        raise InvalidMagnet(f"not a magnet link: {uri!r}")

    params = parse_qs(parts.query)

    info_hash = None
    for xt in params.get("xt", []):
        match = _BTIH_RE.fullmatch(xt)
        if match:
            info_hash = _normalize_hash(match.group(1))
            break
    if not info_hash:
        raise InvalidMagnet(f"magnet link has no BitTorrent info hash: {uri!r}")

    names = params.get("dn")
    return Magnet(info_hash=info_hash, display_name=names[0] if names else None)


def _normalize_hash(value: str) -> str:
    if len(value) == 32:
        try:
            return base64.b32decode(value.upper()).hex()
        except binascii.Error as e:
            raise InvalidMagnet(f"bad base32 info hash: {value}") from e
    return value.lower()
