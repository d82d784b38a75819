"""Conversation snapshot and control endpoints."""

from fastapi import APIRouter, Depends

from sitout.models import ConversationSnapshot
from sitout.runtime import Runtime

from .deps import get_runtime

router = APIRouter(prefix="/conversation")


@router.get("", response_model=ConversationSnapshot)
async def get_conversation(runtime: Runtime = Depends(get_runtime)):
    """Live history, active speaker and flags for the renderer."""
    return runtime.scheduler.snapshot()


@router.post("/start", response_model=ConversationSnapshot)
async def start_conversation(runtime: Runtime = Depends(get_runtime)):
    """Open the conversation (no-op if already started)."""
    await runtime.scheduler.start()
    return runtime.scheduler.snapshot()


@router.post("/next", response_model=ConversationSnapshot)
async def next_turn(runtime: Runtime = Depends(get_runtime)):
    """Request the next turn now (still subject to dwell, pause and turn limit)."""
    await runtime.scheduler.request_next_turn()
    return runtime.scheduler.snapshot()


@router.post("/pause", response_model=ConversationSnapshot)
async def pause_conversation(runtime: Runtime = Depends(get_runtime)):
    runtime.scheduler.pause()
    return runtime.scheduler.snapshot()


@router.post("/resume", response_model=ConversationSnapshot)
async def resume_conversation(runtime: Runtime = Depends(get_runtime)):
    runtime.scheduler.resume()
    return runtime.scheduler.snapshot()


@router.post("/reset", response_model=ConversationSnapshot)
async def reset_conversation(runtime: Runtime = Depends(get_runtime)):
    """Clear history and return to idle."""
    runtime.scheduler.reset()
    return runtime.scheduler.snapshot()
