"""实体文件路由：上传、列表、预览、详情、重命名与删除。

删除接口返回时，记录删除与账本清理仍在后台执行。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from app.packages.drive.api.v1.endpoints.entities import operation_response
from app.packages.drive.api.v1.schemas.entities import (
    FileDeleteBody,
    FilePreviewResponse,
    FileRenameBody,
    FilesListResponse,
    GenericResponse,
    OperationResponse,
)
from app.packages.drive.core.dependencies import get_entity_manager
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.services.entity_service import EntityLifecycleManager

router = APIRouter(tags=["entity-files"])


@router.get("/entity-files", response_model=FilesListResponse)
async def list_files(
    user_id: str = Query("", alias="userId"),
    entity_name: str = Query("", alias="entityName"),
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    files = await manager.list_files(user_id, entity_name)
    return create_response("获取文件列表成功", files)


@router.post("/entity-files/upload", response_model=OperationResponse)
async def upload_file(
    user_id: str = Form("", alias="userId"),
    entity_name: str = Form("", alias="entityName"),
    custom_name: str = Form("", alias="customName"),
    file: UploadFile = File(...),
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    content = await file.read()
    logger.info("entity_files.upload entity=%s name=%s size=%s", entity_name, file.filename, len(content))
    result = await manager.upload_file(
        user_id, entity_name, file.filename or "", content, file.content_type, custom_name=custom_name
    )
    return operation_response(result, "文件上传成功")


@router.post("/entity-files/delete", response_model=OperationResponse)
async def delete_file(
    payload: FileDeleteBody,
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    result = await manager.delete_file(payload.userId, payload.fileId)
    return operation_response(result, "文件删除成功")


@router.post("/entity-files/rename", response_model=OperationResponse)
async def rename_file(
    payload: FileRenameBody,
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    result = await manager.rename_file(payload.userId, payload.fileId, payload.newName)
    return operation_response(result, "文件重命名成功")


@router.get("/entity-files/preview", response_model=FilePreviewResponse)
async def preview_file(
    user_id: str = Query("", alias="userId"),
    s3_key: str = Query("", alias="s3Key"),
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    preview = await manager.preview_file(user_id, s3_key)
    return create_response("获取文件预览成功", preview)


@router.get("/entity-files/{file_id}", response_model=GenericResponse)
async def get_file(
    file_id: str,
    user_id: str = Query("", alias="userId"),
    manager: EntityLifecycleManager = Depends(get_entity_manager),
):
    record = await manager.get_file(user_id, file_id)
    return create_response("获取文件成功", record.to_item())
