"""实体生命周期编排：在对象存储、元数据目录与交易账本三者之间执行多步操作。

三个存储各自一致，但彼此之间没有事务边界。每个操作都是一个 saga：
前置步骤失败即中止，后续的级联清理逐条捕获、只记日志，不做补偿回滚。
同一实体上并发的 RENAME/DELETE 互不排斥，可能交错破坏中间状态，
这是设计上接受的限制。
"""

from __future__ import annotations

import json
import mimetypes
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from app.packages.drive.core.config import Settings
from app.packages.drive.core.constants import (
    ENTITY_FILES_DIR,
    FILE_ID_PREFIX,
    MIME_DEFAULT_EXTENSIONS,
    RECORD_TYPE_FILE,
    RECORD_TYPE_FOLDER,
    ROOT_PARENT_ID,
)
from app.packages.drive.core.exceptions import AppException, ConflictError, NotFoundError, StoreError, ValidationError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.timezone import now_iso
from app.packages.drive.services.background import DetachedTaskRunner
from app.packages.drive.services.blob_store import BlobStore, build_blob_store
from app.packages.drive.services.record_store import RecordStore, build_record_store
from app.packages.drive.services.records import DriveRecord, Entity, TransactionRecord
from app.packages.drive.services.saga import (
    Saga,
    SagaReport,
    SagaStatus,
    StepPolicy,
    StepResult,
    gather_best_effort,
)
from app.packages.drive.services.statement_parser import parse_statement, preview_statement, statement_kind
from app.packages.drive.utils.path_utils import (
    entity_base_key,
    entity_path,
    entity_prefix,
    folder_id,
    is_entity_path,
    join_key,
    normalize_name,
    owner_base_key,
    placeholder_key,
    replace_last_segment,
    replace_prefix,
    require_owner,
    rewrite_entity_path,
    subfolder_id,
)

ABORT = StepPolicy.ABORT
CONTINUE = StepPolicy.CONTINUE

# 目录 id 冲突时追加序号的最大尝试次数
MAX_FOLDER_ID_ATTEMPTS = 20


@dataclass
class OperationResult:
    """调用方看到的结果：成功与否 + 各阶段计数。"""

    report: SagaReport
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.report.status is SagaStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, **self.data, "report": self.report.to_dict()}


def _require_id(value: Optional[str], *, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} 不能为空")
    return cleaned


def _renamed_fields(
    record: DriveRecord, old_prefix: str, new_prefix: str, old: str, new: str, stamp: str
) -> Dict[str, Any]:
    """实体改名后单条记录需要改写的字段：对象键、路径、子目录父级与文件标签。"""
    fields: Dict[str, Any] = {
        "s3Key": replace_prefix(record.s3_key or "", old_prefix, new_prefix),
        "path": rewrite_entity_path(record.path, old, new),
        "updatedAt": stamp,
    }
    old_path = entity_path(old)
    parent = record.parent_id or ""
    if parent == old_path or parent.startswith(old_path + "/"):
        fields["parentId"] = rewrite_entity_path(parent, old, new)
    if record.is_file and old in record.tags:
        fields["tags"] = [new if tag == old else tag for tag in record.tags]
    return fields


class EntityLifecycleManager:
    def __init__(
        self,
        *,
        settings: Settings,
        blob_store: BlobStore,
        record_store: RecordStore,
        tasks: Optional[DetachedTaskRunner] = None,
    ) -> None:
        self.settings = settings
        self.blobs = blob_store
        self.records = record_store
        self.root = settings.drive_root_folder
        cap = settings.record_scan_max_page_size
        self.catalog = record_store.table(settings.drive_files_table, max_page_size=cap)
        self.ledger = record_store.table(settings.transactions_table, max_page_size=cap)
        self.statements = record_store.table(settings.statements_table, max_page_size=cap)
        self.saga_runs = record_store.table(settings.saga_runs_table, max_page_size=cap) if settings.saga_runs_table else None
        self.tasks = tasks or DetachedTaskRunner()

    @classmethod
    def from_settings(cls, settings: Settings) -> "EntityLifecycleManager":
        blob_store = build_blob_store(
            type=settings.blob_backend,
            region=settings.aws_region,
            bucket_name=settings.s3_bucket,
            local_root_path=settings.local_blob_directory,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
            page_size=settings.blob_list_page_size,
        )
        record_store = build_record_store(
            type=settings.record_backend,
            base_url=settings.crud_api_base_url,
            token=settings.crud_api_token,
            timeout=settings.crud_api_timeout,
        )
        return cls(settings=settings, blob_store=blob_store, record_store=record_store)

    async def close(self) -> None:
        await self.tasks.drain(timeout=self.settings.shutdown_drain_timeout)
        await self.records.close()

    # ----------------------------
    # 实体：创建 / 列表
    # ----------------------------
    async def create_entity(self, owner_id: str, name: str) -> OperationResult:
        owner = require_owner(owner_id)
        cleaned = normalize_name(name, field="entityName")
        path = entity_path(cleaned)
        base_key = entity_base_key(self.root, owner, cleaned)
        saga = Saga(
            "entity.create",
            owner_id=owner,
            target=path,
            steps=[("claim_folder_id", ABORT), ("write_folder_record", ABORT), ("write_placeholder", CONTINUE)],
        )
        stamp = now_iso()
        try:
            async with saga.step("claim_folder_id"):
                record_id, existing = await self._claim_folder_id(
                    folder_id(owner, cleaned),
                    lambda r: r.owner_id == owner and r.name == cleaned and r.path == path,
                )
            record = DriveRecord(
                id=record_id,
                owner_id=owner,
                name=cleaned,
                type=RECORD_TYPE_FOLDER,
                parent_id=ROOT_PARENT_ID,
                path=path,
                s3_key=base_key,
                created_at=existing.created_at if existing else stamp,
                updated_at=stamp,
            )
            async with saga.step("write_folder_record"):
                await self.catalog.create(record.to_item())
            # 占位对象写失败可以容忍：实体依然通过目录记录可见
            async with saga.step("write_placeholder"):
                await self.blobs.put(
                    placeholder_key(base_key),
                    json.dumps({"type": "folder", "created": stamp}).encode("utf-8"),
                    content_type="application/json",
                )
        finally:
            await self._record(saga)

        entity = Entity(
            id=record.id,
            name=cleaned,
            owner_id=owner,
            path=path,
            prefix=base_key + "/",
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        return OperationResult(saga.report, {"id": entity.id, "path": path, "entity": entity.to_dict()})

    async def list_entities(self, owner_id: str) -> List[str]:
        """扫描目录记录，返回去重并排序后的实体名称。写入时不保证唯一，这里必须去重。"""
        owner = require_owner(owner_id)
        names = {
            r.name
            for r in await self._drive_records()
            if r.owner_id == owner and r.is_folder and r.path and is_entity_path(r.path) and r.name
        }
        return sorted(names)

    # ----------------------------
    # 实体：重命名
    # ----------------------------
    async def rename_entity(self, owner_id: str, old_name: str, new_name: str) -> OperationResult:
        """把实体前缀下的对象与记录整体迁移到新名称。

        对象迁移阶段严格：任何一次复制/删除失败都会中止操作，但已迁移的
        对象不会回滚，重复执行也不会识别或修复这部分（非幂等）。之后的
        记录改写、目录记录更新和对账单 URL 改写都是尽力而为。
        """
        owner = require_owner(owner_id)
        old = normalize_name(old_name, field="oldName")
        new = normalize_name(new_name, field="newName")
        old_prefix = entity_prefix(self.root, owner, old)
        new_prefix = entity_prefix(self.root, owner, new)
        saga = Saga(
            "entity.rename",
            owner_id=owner,
            target=f"{entity_path(old)} -> {entity_path(new)}",
            steps=[
                ("move_blobs", ABORT),
                ("rewrite_records", CONTINUE),
                ("rewrite_folder_record", CONTINUE),
                ("rewrite_statement_urls", CONTINUE),
            ],
        )
        if old == new:
            # 自复制后再删除会直接丢失对象
            for result in saga.report.steps:
                saga.skip(result.name, "old and new names are identical")
            await self._record(saga)
            return OperationResult(saga.report, {"name": new})

        stamp = now_iso()
        try:
            async with saga.step("move_blobs") as step:
                async with aclosing(self.blobs.list_by_prefix(old_prefix)) as keys:
                    async for key in keys:
                        step.attempted += 1
                        await self._move_blob(key, replace_prefix(key, old_prefix, new_prefix))
                        step.succeeded += 1

            records: Optional[List[DriveRecord]] = None
            async with saga.step("rewrite_records") as step:
                records = await self._drive_records()
                targets = [r for r in records if r.owner_id == owner and (r.s3_key or "").startswith(old_prefix)]
                await gather_best_effort(
                    step,
                    targets,
                    lambda r: self.catalog.update(r.id, _renamed_fields(r, old_prefix, new_prefix, old, new, stamp)),
                    label=lambda r: r.id,
                )

            if records is None:
                saga.skip("rewrite_folder_record", "catalog scan failed")
            else:
                async with saga.step("rewrite_folder_record") as step:
                    folders = [
                        r for r in records if r.owner_id == owner and r.is_folder and r.path == entity_path(old)
                    ]
                    await gather_best_effort(
                        step,
                        folders,
                        lambda r: self.catalog.update(
                            r.id,
                            {
                                "name": new,
                                "path": entity_path(new),
                                "s3Key": entity_base_key(self.root, owner, new),
                                "updatedAt": stamp,
                            },
                        ),
                        label=lambda r: r.id,
                    )

            async with saga.step("rewrite_statement_urls") as step:
                targets = [
                    (item["id"], item["s3FileUrl"])
                    for item in await self.statements.scan_all()
                    if isinstance(item.get("id"), str)
                    and isinstance(item.get("s3FileUrl"), str)
                    and old_prefix in item["s3FileUrl"]
                ]
                await gather_best_effort(
                    step,
                    targets,
                    lambda t: self.statements.update(
                        t[0], {"s3FileUrl": t[1].replace(old_prefix, new_prefix, 1), "updatedAt": stamp}
                    ),
                    label=lambda t: t[0],
                )
        finally:
            await self._record(saga)
        return OperationResult(saga.report, {"name": new})

    # ----------------------------
    # 实体：删除
    # ----------------------------
    async def delete_entity(self, owner_id: str, name: str) -> OperationResult:
        """级联删除实体。

        对象阶段是全有或全无：单个对象删除失败会直接中止；记录阶段与账本
        阶段逐条捕获失败。账本整体不可达时跳过账本阶段，删除仍然报告成功。
        """
        owner = require_owner(owner_id)
        cleaned = normalize_name(name, field="entityName")
        prefix = entity_prefix(self.root, owner, cleaned)
        path = entity_path(cleaned)
        saga = Saga(
            "entity.delete",
            owner_id=owner,
            target=path,
            steps=[("delete_blobs", ABORT), ("delete_records", CONTINUE), ("delete_ledger_rows", CONTINUE)],
        )
        try:
            async with saga.step("delete_blobs") as step:
                async with aclosing(self.blobs.list_by_prefix(prefix)) as keys:
                    async for key in keys:
                        step.attempted += 1
                        await self.blobs.delete(key)
                        step.succeeded += 1

            async with saga.step("delete_records") as step:
                targets = [
                    r
                    for r in await self._drive_records()
                    if r.owner_id == owner and ((r.s3_key or "").startswith(prefix) or r.path == path)
                ]
                await gather_best_effort(step, targets, lambda r: self.catalog.delete(r.id), label=lambda r: r.id)

            try:
                rows = await self._ledger_rows()
            except StoreError as exc:
                saga.skip("delete_ledger_rows", f"ledger unreachable: {exc.detail}")
            else:
                async with saga.step("delete_ledger_rows") as step:
                    targets = [t for t in rows if t.entity_name == cleaned and t.owner_id == owner]
                    await gather_best_effort(step, targets, lambda t: self.ledger.delete(t.id), label=lambda t: t.id)
        finally:
            await self._record(saga)
        return OperationResult(saga.report, {"name": cleaned})

    # ----------------------------
    # 实体下的子文件夹
    # ----------------------------
    async def create_folder(self, owner_id: str, entity_name: str, folder_name: str) -> OperationResult:
        owner = require_owner(owner_id)
        entity = normalize_name(entity_name, field="entityName")
        folder = normalize_name(folder_name, field="folderName")
        path = f"{entity_path(entity)}/{folder}"
        base_key = join_key(owner_base_key(self.root, owner), path)
        saga = Saga(
            "folder.create",
            owner_id=owner,
            target=path,
            steps=[("write_placeholder", ABORT), ("claim_folder_id", ABORT), ("write_folder_record", ABORT)],
        )
        stamp = now_iso()
        try:
            async with saga.step("write_placeholder"):
                await self.blobs.put(
                    placeholder_key(base_key),
                    json.dumps({"type": "folder", "created": stamp}).encode("utf-8"),
                    content_type="application/json",
                )
            async with saga.step("claim_folder_id"):
                record_id, existing = await self._claim_folder_id(
                    subfolder_id(owner, entity, folder),
                    lambda r: r.owner_id == owner and r.path == path,
                )
            async with saga.step("write_folder_record"):
                await self.catalog.create(
                    DriveRecord(
                        id=record_id,
                        owner_id=owner,
                        name=folder,
                        type=RECORD_TYPE_FOLDER,
                        parent_id=entity_path(entity),
                        path=path,
                        s3_key=base_key,
                        created_at=existing.created_at if existing else stamp,
                        updated_at=stamp,
                    ).to_item()
                )
        finally:
            await self._record(saga)
        return OperationResult(saga.report, {"id": record_id, "path": path})

    async def list_folders(self, owner_id: str, entity_name: str) -> List[str]:
        owner = require_owner(owner_id)
        base = entity_path(normalize_name(entity_name, field="entityName")) + "/"
        names = set()
        for r in await self._drive_records():
            if r.owner_id != owner or not r.is_folder or not (r.path or "").startswith(base):
                continue
            # 只取直接子目录：entities/<entity>/<folder>
            parts = r.path.split("/")
            if len(parts) == 3 and parts[2]:
                names.add(parts[2])
        return sorted(names)

    # ----------------------------
    # 实体下的文件
    # ----------------------------
    async def list_files(self, owner_id: str, entity_name: str) -> List[Dict[str, Any]]:
        owner = require_owner(owner_id)
        base = entity_path(normalize_name(entity_name, field="entityName")) + "/"
        return [
            r.summary()
            for r in await self._drive_records()
            if r.is_file and r.owner_id == owner and (r.path or "").startswith(base)
        ]

    async def get_file(self, owner_id: str, file_id: str) -> DriveRecord:
        """按 id 直接查找；不存在或不属于该用户时抛出 ``NotFoundError``。"""
        owner = require_owner(owner_id)
        fid = _require_id(file_id, field="fileId")
        record = DriveRecord.from_item(await self.catalog.get_by_id(fid))
        if record is None or record.owner_id != owner:
            raise NotFoundError("文件不存在")
        return record

    async def preview_file(self, owner_id: str, s3_key: str) -> Dict[str, Any]:
        """读取对象并解析为 ``{headers, rows}``；只允许读取该用户根前缀下的对象。"""
        owner = require_owner(owner_id)
        key = _require_id(s3_key, field="s3Key")
        if not key.startswith(owner_base_key(self.root, owner) + "/"):
            raise NotFoundError("文件不存在")
        content = await self.blobs.get(key)
        return await run_in_threadpool(preview_statement, key.rsplit("/", 1)[-1], content)

    async def upload_file(
        self,
        owner_id: str,
        entity_name: str,
        file_name: str,
        content: bytes,
        mime_type: Optional[str] = None,
        custom_name: Optional[str] = None,
    ) -> OperationResult:
        """上传到 ``entities/<entity>/files/``；``custom_name`` 非空时替代原文件名。

        不限制文件类型：未知类型按扩展名推断，推断不出时记为
        ``application/octet-stream``。只有配置的黑名单类型会被拒绝。
        """
        owner = require_owner(owner_id)
        entity = normalize_name(entity_name, field="entityName")
        raw_name = custom_name if custom_name and custom_name.strip() else file_name
        name = normalize_name(raw_name, field="fileName")
        if not content:
            raise ValidationError("文件内容不能为空")
        if len(content) > self.settings.max_upload_bytes:
            raise ValidationError("文件大小超过限制")
        mime = mime_type if mime_type and mime_type != "application/octet-stream" else None
        mime = mime or mimetypes.guess_type(name)[0] or "application/octet-stream"
        if mime.lower() in self.settings.denied_mime_types:
            raise ValidationError(f"不支持的文件类型: {mime}")
        if "." not in name:
            name += MIME_DEFAULT_EXTENSIONS.get(mime, "")

        path = f"{entity_path(entity)}/{ENTITY_FILES_DIR}"
        key = join_key(owner_base_key(self.root, owner), path, name)
        stamp = now_iso()
        record = DriveRecord(
            id=f"{FILE_ID_PREFIX}{uuid.uuid4().hex}",
            owner_id=owner,
            name=name,
            type=RECORD_TYPE_FILE,
            parent_id=ROOT_PARENT_ID,
            path=path,
            s3_key=key,
            mime_type=mime,
            size=len(content),
            tags=["entity-file", entity],
            created_at=stamp,
            updated_at=stamp,
        )
        saga = Saga(
            "file.upload",
            owner_id=owner,
            target=f"{path}/{name}",
            steps=[("put_blob", ABORT), ("write_file_record", ABORT), ("write_ledger_rows", CONTINUE)],
        )
        try:
            async with saga.step("put_blob"):
                await self.blobs.put(key, content, content_type=mime)
            async with saga.step("write_file_record"):
                await self.catalog.create(record.to_item())
            if statement_kind(name, mime) is None:
                saga.skip("write_ledger_rows", "not a statement file")
            else:
                # 解析或写入失败都不影响上传本身
                async with saga.step("write_ledger_rows") as step:
                    rows = await run_in_threadpool(parse_statement, name, content, mime)
                    await self._write_ledger_rows(step, rows, owner=owner, entity=entity, record=record)
        finally:
            await self._record(saga)
        return OperationResult(
            saga.report,
            {
                "fileId": record.id,
                "fileName": name,
                "s3Key": key,
                "size": record.size,
                "mimeType": mime,
                "createdAt": stamp,
                "ledgerRows": saga.report.step("write_ledger_rows").succeeded,
            },
        )

    async def rename_file(self, owner_id: str, file_id: str, new_name: str) -> OperationResult:
        owner = require_owner(owner_id)
        new = normalize_name(new_name, field="newName")
        record = await self.get_file(owner, file_id)
        if not record.s3_key:
            raise NotFoundError("文件不存在")
        new_key = replace_last_segment(record.s3_key, new)
        saga = Saga(
            "file.rename",
            owner_id=owner,
            target=record.id,
            steps=[("move_blob", ABORT), ("update_record", ABORT)],
        )
        if new_key == record.s3_key:
            for result in saga.report.steps:
                saga.skip(result.name, "name unchanged")
            await self._record(saga)
            return OperationResult(saga.report, {"s3Key": new_key})
        try:
            async with saga.step("move_blob"):
                await self._move_blob(record.s3_key, new_key)
            async with saga.step("update_record"):
                await self.catalog.update(record.id, {"name": new, "s3Key": new_key, "updatedAt": now_iso()})
        finally:
            await self._record(saga)
        return OperationResult(saga.report, {"s3Key": new_key})

    async def delete_file(self, owner_id: str, file_id: str) -> OperationResult:
        """删除单个文件。

        通过全表扫描定位记录（与其它读取走同一条访问路径），同步删除对象且
        吞掉失败；记录删除与账本清理作为后台任务调度，调用方返回时它们
        尚未执行，也没有完成通知与重试。
        """
        owner = require_owner(owner_id)
        fid = _require_id(file_id, field="fileId")
        saga = Saga(
            "file.delete",
            owner_id=owner,
            target=fid,
            steps=[("locate_record", ABORT), ("delete_blob", CONTINUE), ("schedule_cleanup", ABORT)],
        )
        try:
            async with saga.step("locate_record"):
                record = next((r for r in await self._drive_records() if r.id == fid), None)
                if record is None or record.owner_id != owner or not record.is_file or not record.s3_key:
                    raise NotFoundError("文件不存在")
            async with saga.step("delete_blob"):
                await self.blobs.delete(record.s3_key)
            async with saga.step("schedule_cleanup") as step:
                step.attempted = step.succeeded = 2
        finally:
            await self._record(saga)
        # 报告落盘之后才调度：返回前不再有 await，任务不会先于调用方执行
        self.tasks.spawn(f"delete-file-metadata:{fid}", self.catalog.delete(fid))
        self.tasks.spawn(f"delete-file-ledger:{fid}", self._delete_file_ledger_rows(owner, fid))
        return OperationResult(saga.report, {"fileId": fid})

    # ----------------------------
    # 交易账本
    # ----------------------------
    async def check_transactions(self, owner_id: str, entity_name: str) -> Dict[str, Any]:
        owner = require_owner(owner_id)
        entity = normalize_name(entity_name, field="entityName")
        items = await self.ledger.scan_all()
        rows = [t for t in (TransactionRecord.from_item(it) for it in items) if t is not None]
        matches = [t for t in rows if t.entity_name == entity and t.owner_id == owner]
        logger.info("check_transactions owner=%s entity=%s scanned=%s matched=%s", owner, entity, len(items), len(matches))
        return {
            "totalTransactions": len(items),
            "entityTransactions": len(matches),
            "transactions": [t.summary() for t in matches],
        }

    # ----------------------------
    # 内部辅助
    # ----------------------------
    async def _drive_records(self) -> List[DriveRecord]:
        return [r for r in (DriveRecord.from_item(it) for it in await self.catalog.scan_all()) if r is not None]

    async def _ledger_rows(self) -> List[TransactionRecord]:
        return [t for t in (TransactionRecord.from_item(it) for it in await self.ledger.scan_all()) if t is not None]

    async def _claim_folder_id(
        self, base_id: str, matches: Callable[[DriveRecord], bool]
    ) -> Tuple[str, Optional[DriveRecord]]:
        """返回可写入的目录 id：空闲的，或已被同一目录占用的（覆盖写入）。

        不同名称归一化到同一 id（或改名后旧 id 仍被占用）时追加 ``-2``、``-3`` 等序号。
        """
        for attempt in range(1, MAX_FOLDER_ID_ATTEMPTS + 1):
            candidate = base_id if attempt == 1 else f"{base_id}-{attempt}"
            existing = DriveRecord.from_item(await self.catalog.get_by_id(candidate))
            if existing is None or matches(existing):
                return candidate, existing
            logger.info("folder id %s taken by %r, trying next", candidate, existing.path)
        raise ConflictError(f"目录 id 冲突: {base_id}")

    async def _move_blob(self, src_key: str, dst_key: str) -> None:
        # 先复制后删除；两步之间崩溃会留下新旧两份对象，以新 key 为准
        await self.blobs.copy(src_key, dst_key)
        await self.blobs.delete(src_key)

    async def _write_ledger_rows(
        self,
        step: StepResult,
        rows: List[Dict[str, str]],
        *,
        owner: str,
        entity: str,
        record: DriveRecord,
    ) -> None:
        stamp = now_iso()
        items = [
            TransactionRecord(
                id=str(uuid.uuid4()),
                owner_id=owner,
                file_id=record.id,
                entity_name=entity,
                file_name=record.name,
                created_at=stamp,
                fields=row,
            ).to_item()
            for row in rows
        ]
        chunk = max(1, self.settings.ledger_write_concurrency)
        for start in range(0, len(items), chunk):
            await gather_best_effort(step, items[start : start + chunk], self.ledger.create, label=lambda it: it["id"])
        logger.info("ledger rows written file=%s rows=%s failed=%s", record.id, step.succeeded, step.failed)

    async def _delete_file_ledger_rows(self, owner: str, file_id: str) -> int:
        step = StepResult(name="delete-file-ledger", policy=CONTINUE)
        targets = [t for t in await self._ledger_rows() if t.file_id == file_id and t.owner_id == owner]
        await gather_best_effort(step, targets, lambda t: self.ledger.delete(t.id), label=lambda t: t.id)
        logger.info("deleted %s ledger rows for file %s (failed=%s)", step.succeeded, file_id, step.failed)
        return step.succeeded

    async def _record(self, saga: Saga) -> SagaReport:
        """结束 saga 并尽力持久化运行报告；持久化失败不影响操作结果。"""
        report = saga.finish()
        if self.saga_runs is None:
            return report
        try:
            await self.saga_runs.create(report.to_dict())
        except AppException as exc:
            logger.warning("saga report %s not persisted: %s", report.id, exc.detail)
        return report
