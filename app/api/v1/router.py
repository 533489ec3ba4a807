from fastapi import APIRouter

from app.api.v1.endpoints import autoassign, cron, health, knockability, territories

router = APIRouter(prefix="/api/v1")

router.include_router(autoassign.router)
router.include_router(cron.router)
router.include_router(territories.router)
router.include_router(knockability.router)
router.include_router(health.router)
