"""aria2 implementation of the download engine."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set

import aria2p
from aria2p import ClientException

from ..session.errors import EngineRejected
from ..session.magnet import parse_magnet
from ..session.ratelimit import RateLimit, is_unlimited
from ..utils.config import settings
from ..utils.logger import logger
from .base import DownloadEngine, TorrentInfo, TorrentStats

# aria2 log levels differ from logging's names
_ARIA2_LOG_LEVELS = {
    "DEBUG": "debug",
    "INFO": "info",
    "WARNING": "warn",
    "ERROR": "error",
}


@dataclass
class _Entry:
    """Downloads aria2 keeps for one info hash."""

    metadata: Optional[aria2p.Download] = None
    payload: Optional[aria2p.Download] = None

    @property
    def current(self) -> Optional[aria2p.Download]:
        return self.payload or self.metadata


class Aria2Engine(DownloadEngine):
    """
    BitTorrent engine backed by an aria2c daemon.

    aria2 resolves a magnet with a "[METADATA]" download which is then
    followed by the payload download. Both share the info hash, which is
    used as the torrent identity. Payload downloads are created paused
    (pause-metadata) so nothing is fetched until download_all().
    """

    def __init__(self, api: Optional[aria2p.API] = None, poll_interval: Optional[float] = None):
        """
        Initialize aria2 engine.

        Args:
            api: Connected aria2p API (start() connects one if not provided)
            poll_interval: Seconds between metadata checks (uses settings if not provided)
        """
        self.aria2: Optional[aria2p.API] = api
        self.poll_interval = poll_interval if poll_interval is not None else settings.metadata_poll_interval
        if self.poll_interval <= 0:
            raise ValueError(f"poll interval must be positive: {self.poll_interval}")
        self._aria2_process: Optional[asyncio.subprocess.Process] = None
        self._gids: Dict[str, Set[str]] = {}
        self._snapshot: Dict[str, _Entry] = {}

    def _command(self) -> List[str]:
        aria2_cmd = [
            "aria2c",
            "--enable-rpc",
            "--rpc-listen-all=false",
            f"--rpc-listen-port={settings.aria2_port}",
            f"--dir={settings.download_path}",
            f"--log-level={_ARIA2_LOG_LEVELS[settings.log_level]}",
            "--console-log-level=warn",
            "--summary-interval=0",
            "--pause-metadata=true",
            "--bt-save-metadata=false",
            "--enable-dht=true",
            f"--listen-port={settings.bt_listen_port}",
            # Keep seeding regardless of share ratio
            "--seed-ratio=0.0",
        ]
        if settings.aria2_secret:
            aria2_cmd.append(f"--rpc-secret={settings.aria2_secret}")
        return aria2_cmd

    async def start(self):
        """Start aria2c daemon (if configured) and connect to its RPC interface."""
        if self.aria2:
            return

        try:
            if settings.aria2_spawn:
                logger.info(f"Starting aria2 daemon, downloading to {settings.download_path}")
                self._aria2_process = await asyncio.create_subprocess_exec(
                    *self._command(),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )

                # Wait for aria2 to start
                await asyncio.sleep(settings.aria2_startup_delay)

            client = aria2p.Client(
                host=settings.aria2_host,
                port=settings.aria2_port,
                secret=settings.aria2_secret,
            )
            self.aria2 = aria2p.API(client)
            # Fails fast when nothing listens on the RPC port
            await asyncio.to_thread(self.aria2.get_global_stat)

            logger.info("Connected to aria2")

        except Exception as e:
            logger.error(f"Failed to start aria2: {e}")
            raise

    async def stop(self):
        """Stop aria2c daemon."""
        if self._aria2_process:
            logger.info("Stopping aria2 daemon")
            self._aria2_process.terminate()
            try:
                await asyncio.wait_for(self._aria2_process.wait(), timeout=10)
            except asyncio.TimeoutError:
                self._aria2_process.kill()
                await self._aria2_process.wait()

            self._aria2_process = None
            logger.info("aria2 daemon stopped")

    def _api(self) -> aria2p.API:
        if not self.aria2:
            raise RuntimeError("aria2 not started")
        return self.aria2

    async def refresh(self):
        """Fetch the status of every download in one RPC round trip."""
        downloads = await asyncio.to_thread(self._api().get_downloads)
        self._snapshot = self._group(downloads)

    def _group(self, downloads: List[aria2p.Download]) -> Dict[str, _Entry]:
        snapshot: Dict[str, _Entry] = {}
        for download in downloads:
            identity = (download.info_hash or "").lower()
            if identity not in self._gids or download.status == "removed":
                continue

            # Follow-up downloads are created by aria2, not by add_magnet
            self._gids[identity].add(download.gid)

            entry = snapshot.setdefault(identity, _Entry())
            if download.is_metadata:
                entry.metadata = download
            else:
                entry.payload = download
        return snapshot

    def add_magnet(self, uri: str) -> str:
        """
        Add a magnet link to aria2.

        Returns:
            Info hash of the torrent

        Raises:
            EngineRejected: If aria2 refuses the link
        """
        try:
            download = self._api().add_magnet(uri, options={"pause-metadata": "true"})
        except ClientException as e:
            logger.error(f"aria2 rejected magnet: {e}")
            raise EngineRejected(str(e)) from e

        identity = (download.info_hash or parse_magnet(uri).info_hash).lower()
        self._gids.setdefault(identity, set()).add(download.gid)
        self._snapshot[identity] = self._group([download]).get(identity, _Entry())

        logger.info(f"Added magnet to aria2 (GID: {download.gid})", extra={"identity": identity})
        return identity

    async def metadata_ready(self, identity: str) -> None:
        """Poll the snapshot until files are known or the torrent is dropped."""
        while identity in self._gids:
            if self.info(identity) is not None:
                return
            await asyncio.sleep(self.poll_interval)

    def info(self, identity: str) -> Optional[TorrentInfo]:
        entry = self._snapshot.get(identity)
        download = entry.payload if entry else None
        if download is None or download.bittorrent is None or not download.files:
            return None

        bittorrent = download.bittorrent
        name = (bittorrent.info or {}).get("name") or download.name
        return TorrentInfo(
            piece_count=download.num_pieces,
            piece_length=download.piece_length,
            name=name,
            files=[(self._relative_path(download, f.path), f.length) for f in download.files],
            announce_urls=[url for tier in bittorrent.announce_list or [] for url in tier],
        )

    @staticmethod
    def _relative_path(download: aria2p.Download, path: Path) -> str:
        try:
            return str(Path(path).relative_to(download.dir))
        except ValueError:
            return str(path)

    def stats(self, identity: str) -> TorrentStats:
        entry = self._snapshot.get(identity)
        download = entry.current if entry else None
        if download is None:
            return TorrentStats()

        completed = download.completed_length
        return TorrentStats(
            bytes_completed=completed,
            bytes_missing=max(0, download.total_length - completed),
            active_peers=download.connections,
            total_peers=download.connections,
            cumulative_bytes_read=completed,
            cumulative_bytes_written=download.upload_length,
            chunks_read=_count_pieces(download.bitfield),
        )

    def is_seeding(self, identity: str) -> bool:
        entry = self._snapshot.get(identity)
        return bool(entry and entry.payload and entry.payload.seeder)

    def download_all(self, identity: str) -> None:
        entry = self._snapshot.get(identity)
        if not entry or not entry.payload:
            logger.warning(f"No payload download to resume for {identity}")
            return

        try:
            self._api().resume([entry.payload])
            logger.info(f"Resumed download {entry.payload.gid}", extra={"identity": identity})
        except ClientException as e:
            logger.error(f"Failed to resume download {entry.payload.gid}: {e}")

    def cancel_all_pieces(self, identity: str) -> None:
        entry = self._snapshot.get(identity)
        if not entry or not entry.payload:
            return

        try:
            self._api().pause([entry.payload], force=True)
            logger.info(f"Paused download {entry.payload.gid}", extra={"identity": identity})
        except ClientException as e:
            logger.error(f"Failed to pause download {entry.payload.gid}: {e}")

    def drop(self, identity: str) -> None:
        """
        Remove the metadata and payload downloads of a torrent.

        The torrent stays tracked if an RPC call fails, so the removal can
        be retried.
        """
        gids = self._gids.get(identity)
        if not gids:
            self._snapshot.pop(identity, None)
            return

        pending = sorted(gids)
        removed = set()
        while pending:
            gid = pending.pop()
            if gid in removed:
                continue
            try:
                download = self._api().get_download(gid)
            except ClientException as e:
                logger.debug(f"Download {gid} already gone: {e}")
                removed.add(gid)
                continue

            # The payload may have been created after the last refresh
            pending.extend(download.followed_by_ids)
            self._api().remove([download], force=True, clean=True)
            removed.add(gid)

        self._gids.pop(identity, None)
        self._snapshot.pop(identity, None)
        logger.info(f"Removed downloads {sorted(removed)}", extra={"identity": identity})

    def set_upload_rate_limit(self, limit: RateLimit) -> None:
        self._set_global_limit("max-overall-upload-limit", limit)

    def set_download_rate_limit(self, limit: RateLimit) -> None:
        self._set_global_limit("max-overall-download-limit", limit)

    def _set_global_limit(self, option: str, limit: RateLimit):
        value = "0" if is_unlimited(limit) else str(int(limit))
        self._api().set_global_options({option: value})
        logger.info(f"Set aria2 {option}={value}")


def _count_pieces(bitfield: Optional[str]) -> int:
    """Count completed pieces in aria2's hex bitfield."""
    if not bitfield:
        return 0
    return bin(int(bitfield, 16)).count("1")
