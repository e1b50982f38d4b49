from fastapi import APIRouter

from mintsale.api.sale_endpoints.admin import router as admin_router
from mintsale.api.sale_endpoints.auth import router as auth_router
from mintsale.api.sale_endpoints.claims import router as claims_router
from mintsale.api.sale_endpoints.purchases import router as purchases_router
from mintsale.api.sale_endpoints.views import router as views_router

router = APIRouter(prefix="/sale", tags=["sale"])

router.include_router(auth_router)
router.include_router(views_router)
router.include_router(purchases_router)
router.include_router(claims_router)
router.include_router(admin_router)
