"""通用记录模型：以逻辑表名 + id 为主键保存 JSON 记录。

与外部 CRUD 服务的契约保持一致：同一个后端按 ``table_name`` 区分
元数据目录、交易账本等逻辑表，不提供按字段的二级索引。
"""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.models.base import Base, TimestampMixin


class RecordItem(TimestampMixin, Base):
    __tablename__ = "record_items"

    table_name: Mapped[str] = mapped_column(String(128), primary_key=True)
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
