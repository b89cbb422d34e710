from fastapi import APIRouter

from .routes import cash, health, inventory, products, reports, sales, users

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(products.router)
api_router.include_router(inventory.router)
api_router.include_router(sales.router)
api_router.include_router(users.router)
api_router.include_router(cash.router)
api_router.include_router(reports.router)
