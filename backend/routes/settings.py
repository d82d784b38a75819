"""Health check and settings endpoints."""

from fastapi import APIRouter, Depends

from sitout.runtime import Runtime

from .deps import get_runtime

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(runtime: Runtime = Depends(get_runtime)):
    """Current tunables (credentials reduced to a count)."""
    return runtime.settings.public()
