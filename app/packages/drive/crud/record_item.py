"""通用记录 CRUD：按逻辑表名读写 JSON 记录。"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.record_item import RecordItem


class CRUDRecordItem(CRUDBase[RecordItem]):
    def get_item(self, db: Session, *, table_name: str, id: str) -> Optional[RecordItem]:
        return self.first(db, table_name=table_name, id=id)

    def scan(self, db: Session, *, table_name: str, limit: int) -> List[RecordItem]:
        # 与外部 CRUD 服务一致：只按表名取前 limit 条，不做字段过滤
        return (
            self.query(db)
            .filter(RecordItem.table_name == table_name)
            .order_by(RecordItem.create_time, RecordItem.id)
            .limit(limit)
            .all()
        )

    def put(self, db: Session, *, table_name: str, id: str, payload: Dict[str, Any]) -> RecordItem:
        """整条写入；同 id 已存在时覆盖（PUT 语义）。"""
        row = self.get_item(db, table_name=table_name, id=id)
        if row is None:
            return self.create(db, {"table_name": table_name, "id": id, "payload": dict(payload)})
        row.payload = dict(payload)
        return self.save(db, row)

    def merge(self, db: Session, *, table_name: str, id: str, fields: Dict[str, Any]) -> Optional[RecordItem]:
        row = self.get_item(db, table_name=table_name, id=id)
        if row is None:
            return None
        # 重新赋值整个 dict，JSON 列的原地修改不会被追踪
        row.payload = {**(row.payload or {}), **fields}
        return self.save(db, row)

    def remove(self, db: Session, *, table_name: str, id: str) -> bool:
        row = self.get_item(db, table_name=table_name, id=id)
        if row is None:
            return False
        self.hard_delete(db, row)
        return True


record_item_crud = CRUDRecordItem(RecordItem)
