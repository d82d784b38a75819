"""Persona roster endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from sitout.models import Persona
from sitout.runtime import Runtime

from .deps import get_runtime

router = APIRouter()


def _public(persona: Persona) -> dict:
    return {"id": persona.id, "name": persona.name, "voice": persona.voice.model_dump()}


@router.get("/personas")
async def list_personas(runtime: Runtime = Depends(get_runtime)):
    """Roster in speaking order (no prompts or fallback lines)."""
    return [_public(p) for p in runtime.personas]


@router.get("/personas/{persona_id}")
async def get_persona(persona_id: str, runtime: Runtime = Depends(get_runtime)):
    for p in runtime.personas:
        if p.id == persona_id:
            return _public(p)
    raise HTTPException(404, "Persona not found")
