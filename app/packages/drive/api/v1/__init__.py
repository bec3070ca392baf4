"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from app.packages.drive.api.v1.endpoints import entities, entity_files

api_router = APIRouter()
api_router.include_router(entities.router)
api_router.include_router(entity_files.router)
