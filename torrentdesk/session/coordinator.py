"""Session coordinator: the state between the download engine and the view."""

import dataclasses
from typing import Callable, Dict, List, Optional

from ..engine.base import DownloadEngine
from ..utils.config import settings
from ..utils.logger import logger
from . import metrics
from .errors import EngineRejected, InvalidRate, TorrentNotFound
from .magnet import parse_magnet
from .models import (
    ChangeEvent,
    ChangeKind,
    ConnectionStats,
    DesiredState,
    FileEntry,
    RateLimits,
    RateSample,
    TorrentDetails,
    TorrentRecord,
    TorrentRow,
    lifecycle_phase,
)
from .ratelimit import UNLIMITED, RateLimit, is_unlimited, parse_rate_input

Listener = Callable[[ChangeEvent], None]


class SessionCoordinator:
    """
    Tracks torrents, forwards user intent to the engine and derives metrics.

    All methods are synchronous and must run on a single event loop; the
    SessionRunner serialises ticks and metadata completions with view
    commands.
    """

    def __init__(self, engine: DownloadEngine, tick_interval: Optional[float] = None):
        """
        Initialize coordinator.

        Args:
            engine: Download engine
            tick_interval: Nominal seconds between ticks (uses settings if not provided)
        """
        self.engine = engine
        self.tick_interval = tick_interval if tick_interval is not None else settings.tick_interval
        if self.tick_interval <= 0:
            raise ValueError(f"tick interval must be positive: {self.tick_interval}")
        self._records: Dict[str, TorrentRecord] = {}
        self._order: List[str] = []
        self._listeners: List[Listener] = []
        self._tick_index = 0
        self._revision = 0
        self._limits = RateLimits()

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def limits(self) -> RateLimits:
        return self._limits.model_copy()

    def __contains__(self, identity: str) -> bool:
        return identity in self._records

    def __len__(self) -> int:
        return len(self._order)

    # Notifications

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Callable that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: ChangeKind, identity: Optional[str] = None):
        self._revision += 1
        event = ChangeEvent(kind=kind, revision=self._revision, identity=identity)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Change listener failed on {kind.value}: {e}", exc_info=True)

    # Commands

    def add_magnet(self, uri: str) -> str:
        """
        Add a torrent by magnet link.

        Args:
            uri: Magnet URI

        Returns:
            Torrent identity

        Raises:
            InvalidMagnet: If the URI is not a magnet link
            EngineRejected: If the engine refuses it
        """
        magnet = parse_magnet(uri)

        if magnet.info_hash in self._records:
            logger.warning(f"Torrent {magnet.info_hash} already tracked")
            return magnet.info_hash

        try:
            identity = self.engine.add_magnet(uri)
        except EngineRejected:
            raise
        except Exception as e:
            raise EngineRejected(str(e)) from e

        # The engine may report the identity differently from the link
        if identity in self._records:
            logger.warning(f"Engine returned tracked torrent {identity}")
            return identity

        record = TorrentRecord(identity=identity, display_name=magnet.display_name)
        self._records[identity] = record
        self._order.insert(0, identity)
        self._refresh_display(record)

        logger.info(f"Added torrent {identity} - {record.name}", extra={"identity": identity})
        self._notify(ChangeKind.ADDED, identity)
        return identity

    def metadata_resolved(self, identity: str):
        """
        Handle a metadata completion posted by the runner.

        A completion for a torrent removed in the meantime is dropped.
        """
        record = self._records.get(identity)
        if record is None:
            logger.debug(f"Dropping metadata completion for removed torrent {identity}")
            return

        if record.desired is DesiredState.ACTIVE:
            self.engine.download_all(identity)
        self._refresh_display(record)

        logger.info(f"Metadata resolved for {record.name}", extra={"identity": identity})
        self._notify(ChangeKind.UPDATED, identity)

    def toggle_want(self, identity: str) -> DesiredState:
        """
        Flip between active and paused.

        Returns:
            The new desired state

        Raises:
            TorrentNotFound: If the identity is not tracked
        """
        record = self._get(identity)
        record.desired = record.desired.flipped()

        # Without metadata the flag is applied once metadata resolves
        if self.engine.info(identity) is not None:
            if record.desired is DesiredState.ACTIVE:
                self.engine.download_all(identity)
            else:
                self.engine.cancel_all_pieces(identity)

        self._refresh_display(record)
        logger.info(f"Torrent {identity} now {record.desired.value}", extra={"identity": identity})
        self._notify(ChangeKind.UPDATED, identity)
        return record.desired

    def remove(self, identity: str):
        """
        Drop a torrent from the engine and stop tracking it.

        Raises:
            TorrentNotFound: If the identity is not tracked
        """
        self._get(identity)
        self.engine.drop(identity)
        del self._records[identity]
        self._order.remove(identity)

        logger.info(f"Removed torrent {identity}", extra={"identity": identity})
        self._notify(ChangeKind.REMOVED, identity)

    def set_upload_limit(self, limit: RateLimit):
        """Set the process-wide upload limit in bytes/s (0 means unlimited)."""
        limit = self._validate_limit(limit)
        self.engine.set_upload_rate_limit(limit)
        self._limits.upload = None if is_unlimited(limit) else limit
        logger.info(f"Upload limit set to {self._limits.upload or 'unlimited'}")
        self._notify(ChangeKind.LIMITS)

    def set_download_limit(self, limit: RateLimit):
        """Set the process-wide download limit in bytes/s (0 means unlimited)."""
        limit = self._validate_limit(limit)
        self.engine.set_download_rate_limit(limit)
        self._limits.download = None if is_unlimited(limit) else limit
        logger.info(f"Download limit set to {self._limits.download or 'unlimited'}")
        self._notify(ChangeKind.LIMITS)

    def set_upload_limit_text(self, text: str):
        self.set_upload_limit(parse_rate_input(text))

    def set_download_limit_text(self, text: str):
        self.set_download_limit(parse_rate_input(text))

    @staticmethod
    def _validate_limit(limit: RateLimit) -> RateLimit:
        if limit == UNLIMITED:
            return UNLIMITED
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise InvalidRate(f"rate must be an integer: {limit!r}")
        if limit < 0:
            raise InvalidRate(f"rate must not be negative: {limit}")
        if limit == 0:
            return UNLIMITED
        return limit

    # Tick

    def tick(self) -> List[TorrentRow]:
        """
        Refresh every record and derive rate and ETA.

        Rates use the nominal tick interval, not measured time. The first
        tick after a torrent is added leaves rate and ETA unknown.
        """
        self._tick_index += 1

        for identity in self._order:
            record = self._records[identity]
            self._refresh_display(record)
            self._sample(record)

        self._notify(ChangeKind.TICKED)
        return self.rows()

    def _sample(self, record: TorrentRecord):
        stats = self.engine.stats(record.identity)
        record.rotate(
            RateSample(
                bytes_downloaded=stats.cumulative_bytes_read,
                bytes_uploaded=stats.cumulative_bytes_written,
                captured_at=self._tick_index,
            )
        )
        if record.previous_sample is None:
            return

        downrate, uprate = metrics.rate(
            record.previous_sample, record.current_sample, self.tick_interval
        )
        record.downrate = metrics.format_rate(downrate)
        record.uprate = metrics.format_rate(uprate)

        done, _ = record.current_sample - record.previous_sample
        record.eta = metrics.format_eta(
            metrics.eta(stats.bytes_missing, done, self.tick_interval)
        )

    def _refresh_display(self, record: TorrentRecord):
        info = self.engine.info(record.identity)
        stats = self.engine.stats(record.identity)

        record.name = self._name(record, info)
        record.status = lifecycle_phase(
            has_metadata=info is not None,
            seeding=info is not None and self.engine.is_seeding(record.identity),
            desired=record.desired,
            bytes_missing=stats.bytes_missing,
        ).value

        if info is None:
            record.completed = "0"
            record.total = "?"
        else:
            record.completed = metrics.format_size(stats.bytes_completed)
            record.total = metrics.format_size(stats.bytes_completed + stats.bytes_missing)

    @staticmethod
    def _name(record: TorrentRecord, info) -> str:
        if info is not None and info.name:
            return info.name
        return record.display_name or record.identity

    # Queries

    def rows(self) -> List[TorrentRow]:
        """Return the cached rows in visible order."""
        return [self._records[identity].to_row() for identity in self._order]

    def selected(self, identity: str) -> Optional[TorrentRecord]:
        """Return a copy of the record, or None if not tracked."""
        record = self._records.get(identity)
        if record is None:
            return None
        return dataclasses.replace(record)

    def details(self, identity: str) -> Optional[TorrentDetails]:
        """
        Build the details payload for one torrent.

        Returns:
            TorrentDetails or None if not tracked
        """
        record = self._records.get(identity)
        if record is None:
            return None

        info = self.engine.info(identity)
        stats = self.engine.stats(identity)
        details = TorrentDetails(
            identity=identity,
            name=record.name,
            status=record.status,
            desired=record.desired,
            fetching=info is None,
            connection=ConnectionStats(
                active_peers=stats.active_peers,
                half_open_peers=stats.half_open_peers,
                pending_peers=stats.pending_peers,
                total_peers=stats.total_peers,
                chunks_written=stats.chunks_written,
                chunks_read=stats.chunks_read,
                data_written=metrics.format_size(stats.cumulative_bytes_written),
                data_read=metrics.format_size(stats.cumulative_bytes_read),
            ),
        )
        if info is None:
            return details

        details.files = [
            FileEntry(path=path, size=metrics.format_size(length), length=length)
            for path, length in info.files
        ]
        details.pieces = info.piece_count
        details.piece_length = info.piece_length
        details.announces = sorted(set(info.announce_urls))
        return details

    def _get(self, identity: str) -> TorrentRecord:
        record = self._records.get(identity)
        if record is None:
            logger.warning(f"Torrent {identity} not found")
            raise TorrentNotFound(identity)
        return record
