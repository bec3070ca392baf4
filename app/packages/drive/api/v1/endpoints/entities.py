"""实体路由：创建、列表、重命名、删除，以及实体下的子文件夹与交易核对。"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query

from app.packages.drive.api.v1.schemas.entities import (
    EntityCreateBody,
    EntityDeleteBody,
    EntityListResponse,
    EntityRenameBody,
    FolderCreateBody,
    FolderListResponse,
    GenericResponse,
    OperationResponse,
)
from app.packages.drive.core.dependencies import get_entity_manager
from app.packages.drive.core.responses import create_response
from app.packages.drive.services.entity_service import EntityLifecycleManager, OperationResult

router = APIRouter(tags=["entities"])


def operation_response(result: OperationResult, msg: str) -> dict:
    # 级联阶段的单条失败不改变成功结论，只在提示语里体现
    if result.report.failed_items:
        msg = f"{msg}，{result.report.failed_items} 个条目处理失败"
    return create_response(msg, result.to_dict())


@router.post("/entities", response_model=OperationResponse)
async def create_entity(
    payload: EntityCreateBody,
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    result = await manager.create_entity(payload.userId, payload.entityName)
    return operation_response(result, "实体创建成功")


@router.get("/entities", response_model=EntityListResponse)
async def list_entities(
    user_id: str = Query("", alias="userId"),
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    names = await manager.list_entities(user_id)
    return create_response("获取实体列表成功", {"entities": names})


@router.post("/entities/rename", response_model=OperationResponse)
async def rename_entity(
    payload: EntityRenameBody,
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    """重命名实体：对象迁移失败直接返回错误，已迁移的对象不会回滚。"""
    result = await manager.rename_entity(payload.userId, payload.oldName, payload.newName)
    return operation_response(result, "实体重命名成功")


@router.delete("/entities", response_model=OperationResponse)
async def delete_entity(
    payload: EntityDeleteBody = Body(...),
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    result = await manager.delete_entity(payload.userId, payload.entityName)
    return operation_response(result, "实体删除成功")


@router.get("/entities/folders", response_model=FolderListResponse)
async def list_folders(
    user_id: str = Query("", alias="userId"),
    entity_name: str = Query("", alias="entityName"),
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    folders = await manager.list_folders(user_id, entity_name)
    return create_response("获取文件夹列表成功", {"folders": folders})


@router.post("/entities/folders", response_model=OperationResponse)
async def create_folder(
    payload: FolderCreateBody,
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    result = await manager.create_folder(payload.userId, payload.entityName, payload.folderName)
    return operation_response(result, "文件夹创建成功")


@router.get("/entities/check-transactions", response_model=GenericResponse)
async def check_transactions(
    user_id: str = Query("", alias="userId"),
    entity_name: str = Query("", alias="entityName"),
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    data = await manager.check_transactions(user_id, entity_name)
    return create_response("获取交易记录成功", data)
