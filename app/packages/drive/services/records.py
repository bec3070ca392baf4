"""领域记录：目录/文件元数据、交易账本行与实体视图。

记录存储里的数据没有 schema 约束，读取时一律宽松解析：缺少 id/owner
或字段类型不对的条目直接跳过，不能让一条脏数据拖垮整个扫描。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.packages.drive.core.constants import RECORD_TYPE_FILE, RECORD_TYPE_FOLDER


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


@dataclass
class DriveRecord:
    id: str
    owner_id: str
    name: str = ""
    type: str = RECORD_TYPE_FILE
    parent_id: Optional[str] = None
    path: Optional[str] = None
    s3_key: Optional[str] = None
    mime_type: Optional[str] = None
    size: int = 0
    tags: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.type == RECORD_TYPE_FOLDER

    @property
    def is_file(self) -> bool:
        return self.type == RECORD_TYPE_FILE

    @classmethod
    def from_item(cls, item: Any) -> Optional["DriveRecord"]:
        if not isinstance(item, dict):
            return None
        record_id = _str_or_none(item.get("id"))
        owner_id = _str_or_none(item.get("ownerId"))
        if not record_id or not owner_id:
            return None
        size = item.get("size")
        tags = item.get("tags")
        return cls(
            id=record_id,
            owner_id=owner_id,
            name=_str_or_none(item.get("name")) or "",
            type=_str_or_none(item.get("type")) or "",
            parent_id=_str_or_none(item.get("parentId")),
            path=_str_or_none(item.get("path")),
            s3_key=_str_or_none(item.get("s3Key")),
            mime_type=_str_or_none(item.get("mimeType")),
            size=size if isinstance(size, int) else 0,
            tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
            created_at=_str_or_none(item.get("createdAt")),
            updated_at=_str_or_none(item.get("updatedAt")),
        )

    def to_item(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "parentId": self.parent_id,
            "path": self.path,
            "s3Key": self.s3_key,
            "ownerId": self.owner_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.is_file:
            item.update({"mimeType": self.mime_type, "size": self.size, "tags": list(self.tags)})
        return item

    def summary(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "createdAt": self.created_at or "", "s3Key": self.s3_key or ""}


@dataclass
class TransactionRecord:
    """账本行：由文件内容派生，owner 在账本里沿用 ``userId`` 字段名。"""

    id: str
    owner_id: str
    file_id: Optional[str] = None
    entity_name: Optional[str] = None
    file_name: Optional[str] = None
    created_at: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_item(cls, item: Any) -> Optional["TransactionRecord"]:
        if not isinstance(item, dict):
            return None
        record_id = _str_or_none(item.get("id"))
        owner_id = _str_or_none(item.get("userId")) or _str_or_none(item.get("ownerId"))
        if not record_id or not owner_id:
            return None
        return cls(
            id=record_id,
            owner_id=owner_id,
            file_id=_str_or_none(item.get("fileId")),
            entity_name=_str_or_none(item.get("entityName")),
            file_name=_str_or_none(item.get("fileName")),
            created_at=_str_or_none(item.get("createdAt")),
            fields=dict(item),
        )

    def to_item(self) -> Dict[str, Any]:
        return {
            **self.fields,
            "id": self.id,
            "transactionId": self.id,
            "userId": self.owner_id,
            "fileId": self.file_id,
            "entityName": self.entity_name,
            "fileName": self.file_name,
            "createdAt": self.created_at,
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entityName": self.entity_name,
            "userId": self.owner_id,
            "fileName": self.file_name,
            "fileId": self.file_id,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Entity:
    id: str
    name: str
    owner_id: str
    path: str
    prefix: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ownerId": self.owner_id,
            "path": self.path,
            "prefix": self.prefix,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
