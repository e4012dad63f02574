"""FastAPI routes forwarding view commands to the session coordinator."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..session.coordinator import SessionCoordinator
from ..session.errors import EngineRejected, InvalidMagnet, InvalidRate, TorrentNotFound
from ..session.models import RateLimits, TorrentDetails
from ..utils.logger import logger
from .models import (
    MagnetAddRequest,
    MagnetAddResponse,
    RateLimitRequest,
    ToggleResponse,
    TorrentList,
)


router = APIRouter(prefix="/api")


def get_coordinator(request: Request) -> SessionCoordinator:
    """Coordinator attached to the application at startup."""
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Session not running")
    return coordinator


# Torrent endpoints


@router.get("/torrents")
async def list_torrents(
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> TorrentList:
    """Get the torrent rows in display order."""
    return TorrentList(
        revision=coordinator.revision,
        rows=coordinator.rows(),
        limits=coordinator.limits,
    )


@router.post("/torrents", status_code=201)
async def add_torrent(
    body: MagnetAddRequest,
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> MagnetAddResponse:
    """
    Add a torrent via magnet URI.

    Raises:
        HTTPException: 400 for an invalid magnet, 502 if the engine rejects it
    """
    try:
        identity = coordinator.add_magnet(body.uri)
    except InvalidMagnet as e:
        logger.warning(f"Invalid magnet: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except EngineRejected as e:
        logger.error(f"Failed to add torrent: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return MagnetAddResponse(identity=identity)


@router.get("/torrents/{identity}")
async def get_torrent_details(
    identity: str,
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> TorrentDetails:
    """Get files, pieces, announces and connection stats of one torrent."""
    details = coordinator.details(identity)
    if details is None:
        raise HTTPException(status_code=404, detail="Torrent not found")
    return details


@router.post("/torrents/{identity}/toggle")
async def toggle_torrent(
    identity: str,
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> ToggleResponse:
    """Pause an active torrent or start a paused one."""
    try:
        desired = coordinator.toggle_want(identity)
    except TorrentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ToggleResponse(identity=identity, desired=desired)


@router.delete("/torrents/{identity}", status_code=204)
async def delete_torrent(
    identity: str,
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> Response:
    """Remove a torrent from the session and the engine."""
    try:
        coordinator.remove(identity)
    except TorrentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


# Limit endpoints


@router.put("/limits/upload")
async def set_upload_limit(
    body: RateLimitRequest,
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> RateLimits:
    """Set the upload limit in kb/s (0 = unlimited)."""
    try:
        coordinator.set_upload_limit_text(body.value)
    except InvalidRate as e:
        logger.warning(f"bad rate: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return coordinator.limits


@router.put("/limits/download")
async def set_download_limit(
    body: RateLimitRequest,
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> RateLimits:
    """Set the download limit in kb/s (0 = unlimited)."""
    try:
        coordinator.set_download_limit_text(body.value)
    except InvalidRate as e:
        logger.warning(f"bad rate: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return coordinator.limits
