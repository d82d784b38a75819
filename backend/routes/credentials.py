"""Credential health, reset and probe endpoints. Secrets are always masked."""

from fastapi import APIRouter, Depends, Query

from sitout.runtime import Runtime

from .deps import get_runtime

router = APIRouter(prefix="/credentials")


def _status(runtime: Runtime) -> dict:
    limiter = runtime.limiter
    return {
        "total": len(runtime.pool),
        "available": runtime.pool.available_count,
        "credentials": runtime.pool.status(),
        "rate_limiter": {
            "consecutive_failures": limiter.consecutive_failures,
            "interval": limiter.current_interval,
        },
    }


@router.get("")
async def credential_status(runtime: Runtime = Depends(get_runtime)):
    """Per-credential health plus the rate limiter's backoff."""
    return _status(runtime)


@router.post("/reset")
async def reset_credentials(runtime: Runtime = Depends(get_runtime)):
    """Forgive every credential failure and clear backoff."""
    runtime.pool.reset()
    runtime.limiter.reset()
    return _status(runtime)


@router.post("/probe")
async def probe_credentials(
    delay: float = Query(0.0, ge=0, le=60),
    runtime: Runtime = Depends(get_runtime),
):
    """Send a tiny test prompt with each credential and record the results."""
    results = await runtime.client.probe_all(delay=delay)
    return {"results": results, **_status(runtime)}
