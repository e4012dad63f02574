"""Contract between the session coordinator and a BitTorrent download engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..session.ratelimit import RateLimit


@dataclass
class TorrentInfo:
    """Metadata of a torrent, known once its info dictionary is resolved."""

    piece_count: int
    piece_length: int
    name: str
    files: List[Tuple[str, int]] = field(default_factory=list)  # (path, length)
    announce_urls: List[str] = field(default_factory=list)


@dataclass
class TorrentStats:
    """Byte counters and peer counts reported by the engine."""

    bytes_completed: int = 0
    bytes_missing: int = 0
    active_peers: int = 0
    half_open_peers: int = 0
    pending_peers: int = 0
    total_peers: int = 0
    cumulative_bytes_read: int = 0
    cumulative_bytes_written: int = 0
    chunks_read: int = 0
    chunks_written: int = 0


class DownloadEngine(ABC):
    """
    Abstract BitTorrent engine.

    Query methods read in-memory state only; refresh() is where an engine
    talking to a separate process pulls a new snapshot.
    """

    async def start(self):
        """Start the engine."""

    async def stop(self):
        """Stop the engine."""

    async def refresh(self):
        """Pull fresh counters for all torrents."""

    @abstractmethod
    def add_magnet(self, uri: str) -> str:
        """
        Add a magnet link.

        Returns:
            Torrent identity (40-character lowercase hex info hash)

        Raises:
            EngineRejected: If the engine refuses the URI
        """
        ...

    @abstractmethod
    async def metadata_ready(self, identity: str) -> None:
        """Wait until the torrent's file and piece layout is known."""
        ...

    @abstractmethod
    def info(self, identity: str) -> Optional[TorrentInfo]:
        """Return metadata, or None before it is resolved."""
        ...

    @abstractmethod
    def stats(self, identity: str) -> TorrentStats:
        ...

    @abstractmethod
    def is_seeding(self, identity: str) -> bool:
        ...

    @abstractmethod
    def download_all(self, identity: str) -> None:
        ...

    @abstractmethod
    def cancel_all_pieces(self, identity: str) -> None:
        ...

    @abstractmethod
    def drop(self, identity: str) -> None:
        """Remove the torrent and release its resources."""
        ...

    @abstractmethod
    def set_upload_rate_limit(self, limit: RateLimit) -> None:
        """Set the process-wide upload limit in bytes/s (UNLIMITED disables)."""
        ...

    @abstractmethod
    def set_download_rate_limit(self, limit: RateLimit) -> None:
        """Set the process-wide download limit in bytes/s (UNLIMITED disables)."""
        ...
