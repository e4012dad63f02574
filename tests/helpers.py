"""Shared test helpers and a fake download engine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from torrentdesk.engine.base import DownloadEngine, TorrentInfo, TorrentStats
from torrentdesk.session.errors import EngineRejected
from torrentdesk.session.magnet import parse_magnet

HASH_A = "c12fe1c06bba254a9dc9f519b335aa7c1367a88a"
HASH_B = "08ada5a7a6183aae1e09d831df6748d566095a10"


def magnet(info_hash: str, name: str | None = None) -> str:
    uri = f"magnet:?xt=urn:btih:{info_hash}"
    if name:
        uri += f"&dn={name}"
    return uri


def make_info(name: str = "ubuntu.iso", announces: list[str] | None = None) -> TorrentInfo:
    return TorrentInfo(
        piece_count=4,
        piece_length=262144,
        name=name,
        files=[(name, 1048576)],
        announce_urls=announces or [],
    )


@dataclass
class FakeTorrent:
    info: TorrentInfo | None = None
    stats: TorrentStats = field(default_factory=TorrentStats)
    seeding: bool = False


class FakeEngine(DownloadEngine):
    """In-memory engine recording every command it receives."""

    def __init__(self) -> None:
        self.torrents: dict[str, FakeTorrent] = {}
        self.calls: list[tuple[str, str]] = []
        self.added: list[str] = []
        self.upload_limit = None
        self.download_limit = None
        self.refreshes = 0
        self.reject = False
        self.identity_override: str | None = None
        self._ready: dict[str, asyncio.Event] = {}

    # Test controls

    def resolve(self, identity: str, info: TorrentInfo | None = None) -> None:
        self.torrents.setdefault(identity, FakeTorrent()).info = info or make_info()
        self._ready.setdefault(identity, asyncio.Event()).set()

    def progress(self, identity: str, read: int = 0, written: int = 0, missing: int | None = None) -> None:
        stats = self.torrents[identity].stats
        stats.cumulative_bytes_read += read
        stats.cumulative_bytes_written += written
        stats.bytes_completed += read
        if missing is not None:
            stats.bytes_missing = missing

    # DownloadEngine

    async def refresh(self):
        self.refreshes += 1

    def add_magnet(self, uri: str) -> str:
        if self.reject:
            raise EngineRejected("engine refused")
        identity = self.identity_override or parse_magnet(uri).info_hash
        self.added.append(identity)
        self.torrents.setdefault(identity, FakeTorrent())
        return identity

    async def metadata_ready(self, identity: str) -> None:
        await self._ready.setdefault(identity, asyncio.Event()).wait()

    def info(self, identity: str) -> TorrentInfo | None:
        torrent = self.torrents.get(identity)
        return torrent.info if torrent else None

    def stats(self, identity: str) -> TorrentStats:
        torrent = self.torrents.get(identity)
        return torrent.stats if torrent else TorrentStats()

    def is_seeding(self, identity: str) -> bool:
        torrent = self.torrents.get(identity)
        return bool(torrent and torrent.seeding)

    def download_all(self, identity: str) -> None:
        self.calls.append(("download_all", identity))

    def cancel_all_pieces(self, identity: str) -> None:
        self.calls.append(("cancel_all_pieces", identity))

    def drop(self, identity: str) -> None:
        self.calls.append(("drop", identity))
        self.torrents.pop(identity, None)

    def set_upload_rate_limit(self, limit) -> None:
        self.upload_limit = limit

    def set_download_rate_limit(self, limit) -> None:
        self.download_limit = limit
