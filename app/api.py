"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import DashboardState, ReadingPayload, RefreshAccepted
from services.refresher import RefreshService, build_default_refresher

router = APIRouter()


def get_refresher() -> RefreshService:
    return build_default_refresher()


@router.get(
    "/summary",
    response_model=DashboardState,
    summary="Latest dashboard summary and the most recent refresh failure.",
)
async def get_summary(
    refresher: RefreshService = Depends(get_refresher),
) -> DashboardState:
    state = refresher.store.get_state()
    if state.snapshot is None:
        detail = "No emissions data has been loaded yet."
        if state.last_error is not None:
            detail = f"Failed to load emissions data: {state.last_error.reason}"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
        )
    return state


@router.get(
    "/readings",
    response_model=list[ReadingPayload],
    summary="Most recent readings, newest first.",
)
async def get_readings(
    limit: int = Query(10, ge=1, le=500, description="Maximum number of readings."),
    refresher: RefreshService = Depends(get_refresher),
) -> list[ReadingPayload]:
    snapshot = refresher.store.get_snapshot()
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No emissions data has been loaded yet.",
        )
    return list(reversed(snapshot.readings[-limit:]))


@router.post(
    "/refresh",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=RefreshAccepted,
    summary="Trigger an immediate refresh cycle.",
)
async def trigger_refresh(
    refresher: RefreshService = Depends(get_refresher),
) -> RefreshAccepted:
    try:
        sequence = refresher.refresh()
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Refresh service is shutting down.",
        ) from exc
    return RefreshAccepted(sequence=sequence)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /ui for the dashboard and /summary for data."}
