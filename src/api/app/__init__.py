from fastapi import APIRouter

from src.api.app.routes.address import router as address_router

router = APIRouter()

# Inclua os routers filhos no router pai
router.include_router(address_router)
