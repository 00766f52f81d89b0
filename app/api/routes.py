from fastapi import APIRouter

from app.api.accounts import router as accounts_router
from app.api.admin import router as admin_router
from app.api.changes import router as changes_router
from app.api.health import router as health_router
from app.api.patients import router as patients_router
from app.api.queue import router as queue_router
from app.api.sessions import router as sessions_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(sessions_router, prefix="/v1", tags=["auth"])
router.include_router(queue_router, prefix="/v1", tags=["queue"])
router.include_router(patients_router, prefix="/v1", tags=["patients"])
router.include_router(accounts_router, prefix="/v1", tags=["accounts"])
router.include_router(changes_router, prefix="/v1", tags=["changes"])
router.include_router(admin_router, prefix="/admin", tags=["admin"])
