"""记录存储适配层：元数据目录、交易账本与对账单引用共用的统一后端。

后端按逻辑表名寻址，只支持 GET / SCAN / PUT / UPDATE / DELETE，
不支持按 owner、路径或外键的服务端过滤。所有“查询”都是：
先扫描至多 ``max_page_size`` 条，再在内存中按谓词过滤。超过上限的记录
对所有操作都不可见，这是一个已知的容量上限，而不是需要隐藏的缺陷。
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.packages.drive.core.constants import HTTP_STATUS_BAD_REQUEST
from app.packages.drive.core.exceptions import AppException, NotFoundError, StoreError
from app.packages.drive.crud.record_item import record_item_crud

Item = Dict[str, Any]
T = TypeVar("T")


class RecordStore:
    """统一记录后端接口。"""

    name = "records"

    async def get(self, table: str, id: str) -> Optional[Item]:
        raise NotImplementedError

    async def scan(self, table: str, limit: int) -> List[Item]:
        raise NotImplementedError

    async def put(self, table: str, item: Item) -> Item:
        raise NotImplementedError

    async def update(self, table: str, id: str, fields: Item) -> None:
        raise NotImplementedError

    async def delete(self, table: str, id: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None

    def table(self, table_name: str, *, max_page_size: int) -> "RecordTable":
        return RecordTable(self, table_name, max_page_size=max_page_size)


class RecordTable:
    """绑定了逻辑表名的记录存储视图。"""

    def __init__(self, store: RecordStore, table_name: str, *, max_page_size: int) -> None:
        self.store = store
        self.table_name = table_name
        self.max_page_size = max(1, int(max_page_size))

    async def get_by_id(self, id: str) -> Optional[Item]:
        return await self.store.get(self.table_name, id)

    async def scan_all(self, page_size: Optional[int] = None) -> List[Item]:
        limit = min(page_size or self.max_page_size, self.max_page_size)
        return await self.store.scan(self.table_name, limit)

    async def create(self, record: Item) -> Item:
        if not record.get("id"):
            raise AppException("记录缺少 id", HTTP_STATUS_BAD_REQUEST)
        return await self.store.put(self.table_name, record)

    async def update(self, id: str, fields: Item) -> None:
        await self.store.update(self.table_name, id, fields)

    async def delete(self, id: str) -> None:
        await self.store.delete(self.table_name, id)

    def __repr__(self) -> str:
        return f"RecordTable({self.table_name!r}, store={self.store.name!r})"


# ------------------------------------------
# SQL 实现（SQLAlchemy）
# ------------------------------------------


class SqlRecordStore(RecordStore):
    """每次调用使用独立会话，在线程池中执行，互不共享事务。"""

    name = "records:sql"

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def _run(self, operation: str, table: str, fn: Callable[[Session], T]) -> T:
        def _with_session() -> T:
            with self._session_factory() as db:
                return fn(db)

        try:
            return await run_in_threadpool(_with_session)
        except SQLAlchemyError as exc:
            raise StoreError(
                f"记录存储操作失败: {operation} {table}",
                store=self.name,
                operation=operation,
                target=table,
            ) from exc

    async def get(self, table: str, id: str) -> Optional[Item]:
        def _get(db: Session) -> Optional[Item]:
            row = record_item_crud.get_item(db, table_name=table, id=id)
            return dict(row.payload) if row is not None else None

        return await self._run("get", table, _get)

    async def scan(self, table: str, limit: int) -> List[Item]:
        def _scan(db: Session) -> List[Item]:
            return [dict(row.payload) for row in record_item_crud.scan(db, table_name=table, limit=limit)]

        return await self._run("scan", table, _scan)

    async def put(self, table: str, item: Item) -> Item:
        def _put(db: Session) -> Item:
            row = record_item_crud.put(db, table_name=table, id=str(item["id"]), payload=item)
            return dict(row.payload)

        return await self._run("put", table, _put)

    async def update(self, table: str, id: str, fields: Item) -> None:
        def _update(db: Session):
            return record_item_crud.merge(db, table_name=table, id=id, fields=fields)

        if await self._run("update", table, _update) is None:
            raise NotFoundError(f"记录不存在: {table}/{id}")

    async def delete(self, table: str, id: str) -> None:
        await self._run("delete", table, lambda db: record_item_crud.remove(db, table_name=table, id=id))


# ------------------------------------------
# HTTP 实现：外部 CRUD 服务的通用 execute 接口
# ------------------------------------------


class HttpRecordStore(RecordStore):
    name = "records:http"

    def __init__(
        self,
        *,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def execute(self, operation: str, table: str, **payload: Any) -> Any:
        body = {"executeType": "crud", "crudOperation": operation, "tableName": table, **payload}
        try:
            response = await self._client.post("/execute", json=body)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise StoreError(
                f"CRUD 服务调用失败: {operation} {table}: {exc}",
                store=self.name,
                operation=operation,
                target=table,
            ) from exc

    async def get(self, table: str, id: str) -> Optional[Item]:
        try:
            data = await self.execute("get", table, id=id)
        except StoreError as exc:
            cause = exc.__cause__
            if isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404:
                return None
            raise
        if isinstance(data, dict) and isinstance(data.get("item"), dict):
            return data["item"]
        if isinstance(data, dict) and data.get("id"):
            return data
        return None

    async def scan(self, table: str, limit: int) -> List[Item]:
        data = await self.execute("get", table, pagination="true", itemPerPage=limit)
        items = data.get("items") if isinstance(data, dict) else None
        return [it for it in (items or []) if isinstance(it, dict)][:limit]

    async def put(self, table: str, item: Item) -> Item:
        await self.execute("post", table, item=item)
        return item

    async def update(self, table: str, id: str, fields: Item) -> None:
        await self.execute("put", table, key={"id": id}, updates=fields)

    async def delete(self, table: str, id: str) -> None:
        await self.execute("delete", table, id=id)

    async def close(self) -> None:
        await self._client.aclose()


def build_record_store(
    *,
    type: str,
    base_url: Optional[str] = None,
    token: Optional[str] = None,
    timeout: float = 30.0,
    session_factory: Optional[Callable[[], Session]] = None,
) -> RecordStore:
    t = (type or "").upper()
    if t == "HTTP":
        if not base_url:
            raise AppException("缺少 CRUD 服务地址配置", HTTP_STATUS_BAD_REQUEST)
        return HttpRecordStore(base_url=base_url, token=token, timeout=timeout)
    if t == "SQL":
        if session_factory is None:
            from app.packages.drive.db import session as db_session

            session_factory = db_session.SessionLocal
        return SqlRecordStore(session_factory)
    raise AppException("不支持的记录存储类型", HTTP_STATUS_BAD_REQUEST)
