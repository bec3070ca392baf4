"""对象存储适配层：统一封装本地与 S3 的对象操作。

只提供四个原语：put / list_by_prefix / copy / delete（外加只读的 get / exists）。
不存在原子的 move：移动永远是“先复制、后删除”两次独立调用，中途失败时
新旧两个 key 会同时存在，此后以新 key 为准，不做回滚。
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from app.packages.drive.core.exceptions import AppException, NotFoundError, StoreError, ValidationError
from app.packages.drive.core.constants import HTTP_STATUS_BAD_REQUEST

Page = Tuple[List[str], Optional[str]]
MISSING_KEY_CODES = {"404", "NoSuchKey", "NotFound"}


class BlobStore:
    """对象存储接口。子类只需实现同步的 ``_xxx`` 方法，阻塞调用统一放到线程池。"""

    name = "blob"
    wrapped_errors: Tuple[type, ...] = ()

    def __init__(self, *, page_size: int = 1000) -> None:
        self.page_size = max(1, int(page_size))

    async def _call(self, operation: str, target: str, fn, *args):
        try:
            return await run_in_threadpool(fn, *args)
        except self.wrapped_errors as exc:
            raise StoreError(
                f"对象存储操作失败: {operation} {target}",
                store=self.name,
                operation=operation,
                target=target,
            ) from exc

    async def put(self, key: str, body: bytes, *, content_type: Optional[str] = None) -> None:
        await self._call("put", key, self._put, key, body, content_type)

    async def list_by_prefix(self, prefix: str) -> AsyncIterator[str]:
        """逐页列举 ``prefix`` 下的 key，直到续传令牌耗尽；每次调用都从头开始。"""
        token: Optional[str] = None
        while True:
            keys, token = await self._call("list", prefix, self._list_page, prefix, token)
            for key in keys:
                yield key
            if not token:
                break

    async def copy(self, src_key: str, dst_key: str) -> None:
        await self._call("copy", src_key, self._copy, src_key, dst_key)

    async def delete(self, key: str) -> None:
        await self._call("delete", key, self._delete, key)

    async def get(self, key: str) -> bytes:
        """读取整个对象；对象不存在时抛 ``NotFoundError``，其它失败统一为 ``StoreError``。"""
        return await self._call("get", key, self._get, key)

    async def exists(self, key: str) -> bool:
        return await self._call("exists", key, self._exists, key)

    def _put(self, key: str, body: bytes, content_type: Optional[str]) -> None:
        raise NotImplementedError

    def _list_page(self, prefix: str, token: Optional[str]) -> Page:
        raise NotImplementedError

    def _copy(self, src_key: str, dst_key: str) -> None:
        raise NotImplementedError

    def _delete(self, key: str) -> None:
        raise NotImplementedError

    def _get(self, key: str) -> bytes:
        raise NotImplementedError

    def _exists(self, key: str) -> bool:
        raise NotImplementedError


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalBlobStore(BlobStore):
    """以目录树模拟对象存储，续传令牌语义与 ListObjectsV2 的 StartAfter 一致。"""

    name = "blob:local"
    wrapped_errors = (OSError,)

    def __init__(self, root: str | Path, *, page_size: int = 1000) -> None:
        super().__init__(page_size=page_size)
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, key: str) -> Path:
        rel = key.strip().lstrip("/")
        candidate = (self.root / rel).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise ValidationError(f"非法对象 key: {key}") from exc
        return candidate

    def _key_of(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _put(self, key: str, body: bytes, content_type: Optional[str]) -> None:
        target = self._resolve(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(body)

    def _list_page(self, prefix: str, token: Optional[str]) -> Page:
        head = prefix.rsplit("/", 1)[0] if "/" in prefix else ""
        base = self._resolve(head) if head else self.root
        if not base.is_dir():
            return [], None
        keys = sorted(
            key
            for key in (self._key_of(p) for p in base.rglob("*") if p.is_file())
            if key.startswith(prefix) and (token is None or key > token)
        )
        page = keys[: self.page_size]
        next_token = page[-1] if len(keys) > self.page_size else None
        return page, next_token

    def _copy(self, src_key: str, dst_key: str) -> None:
        src = self._resolve(src_key)
        dst = self._resolve(dst_key)
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)

    def _delete(self, key: str) -> None:
        # 与 S3 一致：删除不存在的对象视为成功
        self._resolve(key).unlink(missing_ok=True)

    def _exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def _get(self, key: str) -> bytes:
        if not self._exists(key):
            raise NotFoundError(f"对象不存在: {key}")
        return self.read(key)

    def read(self, key: str) -> bytes:
        return self._resolve(key).read_bytes()


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


class S3BlobStore(BlobStore):
    name = "blob:s3"
    wrapped_errors = (ClientError, BotoCoreError)

    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        page_size: int = 1000,
        client=None,
    ) -> None:
        super().__init__(page_size=page_size)
        self.bucket = bucket
        self.region = region
        # 未显式配置凭证时交给 boto3 的默认凭证链
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            endpoint_url=endpoint_url,
        )

    def _put(self, key: str, body: bytes, content_type: Optional[str]) -> None:
        params = {"Bucket": self.bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        self._client.put_object(**params)

    def _list_page(self, prefix: str, token: Optional[str]) -> Page:
        params = {"Bucket": self.bucket, "Prefix": prefix, "MaxKeys": self.page_size}
        if token:
            params["ContinuationToken"] = token
        out = self._client.list_objects_v2(**params)
        keys = [obj["Key"] for obj in out.get("Contents", []) if obj.get("Key")]
        next_token = out.get("NextContinuationToken") if out.get("IsTruncated") else None
        return keys, next_token

    def _copy(self, src_key: str, dst_key: str) -> None:
        self._client.copy_object(
            Bucket=self.bucket,
            Key=dst_key,
            CopySource={"Bucket": self.bucket, "Key": src_key},
        )

    def _delete(self, key: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=key)

    def _get(self, key: str) -> bytes:
        try:
            out = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in MISSING_KEY_CODES:
                raise NotFoundError(f"对象不存在: {key}") from exc
            raise
        return out["Body"].read()

    def _exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in MISSING_KEY_CODES:
                return False
            raise
        return True


def build_blob_store(
    *,
    type: str,
    region: Optional[str] = None,
    bucket_name: Optional[str] = None,
    local_root_path: Optional[str | Path] = None,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    page_size: int = 1000,
) -> BlobStore:
    t = (type or "").upper()
    if t == "LOCAL":
        if not local_root_path:
            raise AppException("缺少本地根目录配置", HTTP_STATUS_BAD_REQUEST)
        return LocalBlobStore(local_root_path, page_size=page_size)
    if t == "S3":
        if not (region and bucket_name):
            raise AppException("S3 配置不完整", HTTP_STATUS_BAD_REQUEST)
        return S3BlobStore(
            bucket=bucket_name,
            region=region,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            endpoint_url=endpoint_url,
            page_size=page_size,
        )
    raise AppException("不支持的存储类型", HTTP_STATUS_BAD_REQUEST)
