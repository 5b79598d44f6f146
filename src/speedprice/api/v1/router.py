# src/speedprice/api/v1/router.py
from fastapi import APIRouter

from speedprice.api.v1 import admin, favorites, history, products

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(products.router)
api_router.include_router(history.router)
api_router.include_router(favorites.router)
api_router.include_router(admin.router)
