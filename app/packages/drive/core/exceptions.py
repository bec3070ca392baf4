"""异常处理模块：定义统一的业务异常与响应格式。

实体编排中的错误分为三类：
- ``ValidationError``：必填参数缺失或非法，在访问任何存储之前抛出；
- ``NotFoundError``：仅在按 id 直接查找时出现，扫描过滤为空不算错误；
- ``StoreError``：底层存储调用失败，是否中止由所在步骤的策略决定。
"""

from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.drive.core.constants import (
    HTTP_STATUS_BAD_GATEWAY,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_NOT_FOUND,
)
from app.packages.drive.core.logger import logger


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data: Any = None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data


class ValidationError(AppException):
    def __init__(self, msg: str, data: Any = None) -> None:
        super().__init__(msg, HTTP_STATUS_BAD_REQUEST, data)


class ConflictError(ValidationError):
    """两个名称归一化到同一个目录 id 时抛出。"""

    def __init__(self, msg: str, data: Any = None) -> None:
        super().__init__(msg, data)
        self.status_code = HTTP_STATUS_CONFLICT


class NotFoundError(AppException):
    def __init__(self, msg: str, data: Any = None) -> None:
        super().__init__(msg, HTTP_STATUS_NOT_FOUND, data)


class StoreError(AppException):
    """底层存储（对象存储 / 记录存储）调用失败。"""

    def __init__(self, msg: str, *, store: str, operation: str, target: Optional[str] = None) -> None:
        super().__init__(msg, HTTP_STATUS_BAD_GATEWAY, {"store": store, "operation": operation, "target": target})
        self.store = store
        self.operation = operation
        self.target = target


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    if isinstance(exc, StoreError):
        logger.warning("store failure surfaced to caller: %s (%s)", exc.detail, exc.data)
    payload = {"msg": exc.detail, "data": getattr(exc, "data", None), "code": exc.status_code}
    return JSONResponse(status_code=exc.status_code, content=payload)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：将未捕获异常转换为标准的 500 响应结构。"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    payload = {
        "msg": "服务器内部错误",
        "data": None,
        "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
