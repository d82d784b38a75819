"""FastAPI API endpoints under /api.

Endpoint groups: health + settings, conversation (renderer snapshot and
control operations), personas (roster for avatars and voices), credentials
(masked health, reset, probe).

Renderers only read /conversation; every state change goes through the
control endpoints, which map one-to-one onto TurnScheduler operations.
"""

from fastapi import APIRouter

from .conversation import router as conversation_router
from .credentials import router as credentials_router
from .personas import router as personas_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(conversation_router)
router.include_router(personas_router)
router.include_router(credentials_router)
