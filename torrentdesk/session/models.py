"""Session state and view payload models."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field


class DesiredState(str, Enum):
    """What the user wants the engine to do with a torrent."""

    ACTIVE = "active"
    PAUSED = "paused"

    def flipped(self) -> "DesiredState":
        if self is DesiredState.ACTIVE:
            return DesiredState.PAUSED
        return DesiredState.ACTIVE


class LifecyclePhase(str, Enum):
    """Displayed status, derived on every refresh."""

    FETCHING_METADATA = "starting"
    SEEDING = "seeding"
    PAUSED = "paused"
    FINISHED = "finished"
    DOWNLOADING = "downloading"


def lifecycle_phase(
    has_metadata: bool,
    seeding: bool,
    desired: DesiredState,
    bytes_missing: int,
) -> LifecyclePhase:
    """
    Derive the lifecycle phase.

    Precedence: fetching metadata > seeding > paused > finished > downloading.
    A finished torrent that was paused reports paused.
    """
    if not has_metadata:
        return LifecyclePhase.FETCHING_METADATA
    if seeding:
        return LifecyclePhase.SEEDING
    if desired is DesiredState.PAUSED:
        return LifecyclePhase.PAUSED
    if bytes_missing == 0:
        return LifecyclePhase.FINISHED
    return LifecyclePhase.DOWNLOADING


@dataclass(frozen=True)
class RateSample:
    """Cumulative byte counters captured at a logical tick index."""

    bytes_downloaded: int
    bytes_uploaded: int
    captured_at: int

    def __sub__(self, other: "RateSample") -> Tuple[int, int]:
        return (
            self.bytes_downloaded - other.bytes_downloaded,
            self.bytes_uploaded - other.bytes_uploaded,
        )


class TorrentRow(BaseModel):
    """One row of the torrent list."""

    identity: str
    status: str
    name: str
    completed: str
    total: str
    eta: str
    downrate: str
    uprate: str
    desired: DesiredState


@dataclass
class TorrentRecord:
    """Per-torrent state owned by the coordinator."""

    identity: str
    desired: DesiredState = DesiredState.ACTIVE
    display_name: Optional[str] = None
    previous_sample: Optional[RateSample] = None
    current_sample: Optional[RateSample] = None

    # Cached display fields
    status: str = LifecyclePhase.FETCHING_METADATA.value
    name: str = ""
    completed: str = "0"
    total: str = "?"
    eta: str = "?"
    downrate: str = "?"
    uprate: str = "?"

    def rotate(self, sample: RateSample) -> None:
        """Shift the current sample to previous and store a fresh one."""
        if self.current_sample and sample.captured_at <= self.current_sample.captured_at:
            raise ValueError("samples must be captured in increasing tick order")
        self.previous_sample = self.current_sample
        self.current_sample = sample

    def to_row(self) -> TorrentRow:
        return TorrentRow(
            identity=self.identity,
            status=self.status,
            name=self.name,
            completed=self.completed,
            total=self.total,
            eta=self.eta,
            downrate=self.downrate,
            uprate=self.uprate,
            desired=self.desired,
        )


class FileEntry(BaseModel):
    """A file inside a torrent."""

    path: str
    size: str
    length: int


class ConnectionStats(BaseModel):
    """Peer and transfer counters for the details pane."""

    active_peers: int = 0
    half_open_peers: int = 0
    pending_peers: int = 0
    total_peers: int = 0
    chunks_written: int = 0
    chunks_read: int = 0
    data_written: str = "0.0m"
    data_read: str = "0.0m"


class TorrentDetails(BaseModel):
    """Details payload for a single selected torrent."""

    identity: str
    name: str
    status: str
    desired: DesiredState
    fetching: bool = Field(..., description="Metadata not resolved yet")
    files: List[FileEntry] = Field(default_factory=list)
    pieces: Optional[int] = None
    piece_length: Optional[int] = None
    announces: List[str] = Field(default_factory=list)
    connection: ConnectionStats = Field(default_factory=ConnectionStats)


class RateLimits(BaseModel):
    """Currently applied limits in bytes/second, None meaning unlimited."""

    upload: Optional[int] = None
    download: Optional[int] = None


class ChangeKind(str, Enum):
    """Kinds of change notifications."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    TICKED = "ticked"
    LIMITS = "limits"


@dataclass(frozen=True)
class ChangeEvent:
    """Notification emitted after every coordinator mutation."""

    kind: ChangeKind
    revision: int
    identity: Optional[str] = None
