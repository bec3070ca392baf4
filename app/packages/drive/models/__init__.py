"""模型包导出。"""

from app.packages.drive.models.base import Base
from app.packages.drive.models.record_item import RecordItem

__all__ = ["Base", "RecordItem"]
