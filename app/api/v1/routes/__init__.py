from fastapi import APIRouter

from app.api.v1.routes import vip, vip_admin

router = APIRouter()
router.include_router(vip.router, prefix="/vip")
router.include_router(vip_admin.router, prefix="/vip/admin")
