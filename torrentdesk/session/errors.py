"""Exceptions raised by the session coordinator and the download engine."""


class TorrentDeskError(Exception):
    """Base exception for all application-specific errors."""


class InvalidMagnet(TorrentDeskError):
    """Raised when a URI is not a BitTorrent magnet link."""


class EngineRejected(TorrentDeskError):
    """Raised when the download engine refuses to add a torrent."""


class TorrentNotFound(TorrentDeskError):
    """Raised when a command references an identity that is not tracked."""

    def __init__(self, identity: str):
        super().__init__(f"Torrent {identity} not found")
        self.identity = identity


class InvalidRate(TorrentDeskError):
    """Raised when a rate limit is not a non-negative integer."""


class NotANumber(InvalidRate, ValueError):
    """Raised when rate limit text is not a base-10 integer."""
