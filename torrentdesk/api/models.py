"""Pydantic models for API requests/responses."""

from typing import List

from pydantic import BaseModel, Field

from ..session.models import DesiredState, RateLimits, TorrentRow


class MagnetAddRequest(BaseModel):
    """Request model for adding a torrent."""

    uri: str = Field(..., description="Magnet URI")


class MagnetAddResponse(BaseModel):
    identity: str


class ToggleResponse(BaseModel):
    identity: str
    desired: DesiredState


class RateLimitRequest(BaseModel):
    """Rate limit as typed by the user, in kb/s (0 = unlimited)."""

    value: str = Field(..., description="Integer kb/s")


class TorrentList(BaseModel):
    """Torrent list as rendered by the view."""

    revision: int
    rows: List[TorrentRow]
    limits: RateLimits
