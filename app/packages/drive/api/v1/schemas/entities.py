"""实体与实体文件接口的请求/响应模型。

字段名沿用前端约定的 camelCase；空白与合法性校验交给服务层统一处理，
这里只约束字段必须存在。
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class EntityCreateBody(BaseModel):
    userId: str
    entityName: str


class EntityRenameBody(BaseModel):
    userId: str
    oldName: str
    newName: str


class EntityDeleteBody(BaseModel):
    userId: str
    entityName: str


class FolderCreateBody(BaseModel):
    userId: str
    entityName: str
    folderName: str


class FileDeleteBody(BaseModel):
    userId: str
    fileId: str


class FileRenameBody(BaseModel):
    userId: str
    fileId: str
    newName: str = Field(..., min_length=1)


class EntityListData(BaseModel):
    entities: List[str] = Field(default_factory=list)


class FolderListData(BaseModel):
    folders: List[str] = Field(default_factory=list)


class FilePreviewData(BaseModel):
    headers: List[str] = Field(default_factory=list)
    rows: List[Dict[str, str]] = Field(default_factory=list)


EntityListResponse = ResponseEnvelope[EntityListData]
FolderListResponse = ResponseEnvelope[FolderListData]
FilePreviewResponse = ResponseEnvelope[FilePreviewData]
OperationResponse = ResponseEnvelope[dict]
FilesListResponse = ResponseEnvelope[List[dict]]
GenericResponse = ResponseEnvelope[Any]
