"""测试夹具：隔离的 SQLite 记录库、本地对象存储与实体编排器。

应用在导入时即读取配置，因此环境变量必须在导入 ``app`` 之前设置。
SQLite 使用临时文件而不是内存库：存储调用发生在线程池的不同线程中。
"""

import os
import shutil
import tempfile
from typing import Generator

TEST_ROOT = tempfile.mkdtemp(prefix="entity-drive-tests-")
TEST_DB_PATH = os.path.join(TEST_ROOT, "test.db")

os.environ["RECORD_BACKEND"] = "SQL"
os.environ["BLOB_BACKEND"] = "LOCAL"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["LOCAL_BLOB_ROOT"] = os.path.join(TEST_ROOT, "blobs")
os.environ["LOG_DIR"] = os.path.join(TEST_ROOT, "log")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.drive.core.config import get_settings  # noqa: E402
from app.packages.drive.core.dependencies import get_entity_manager  # noqa: E402
from app.packages.drive.db import session as db_session  # noqa: E402
from app.packages.drive.db.init_db import init_db  # noqa: E402
from app.packages.drive.models.record_item import RecordItem  # noqa: E402
from app.packages.drive.services.background import DetachedTaskRunner  # noqa: E402
from app.packages.drive.services.blob_store import LocalBlobStore  # noqa: E402
from app.packages.drive.services.entity_service import EntityLifecycleManager  # noqa: E402
from app.packages.drive.services.record_store import SqlRecordStore  # noqa: E402

OWNER = "u1"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建记录表，并在会话结束后清理临时目录。"""
    init_db()
    yield
    db_session.engine.dispose()
    shutil.rmtree(TEST_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def clean_records() -> Generator[None, None, None]:
    """每个用例开始前清空所有逻辑表。"""
    with db_session.SessionLocal() as db:
        db.query(RecordItem).delete()
        db.commit()
    yield


@pytest.fixture()
def blob_store(tmp_path) -> LocalBlobStore:
    # 页大小刻意很小，让列举必须走续传令牌
    return LocalBlobStore(tmp_path / "blobs", page_size=2)


@pytest.fixture()
def record_store() -> SqlRecordStore:
    return SqlRecordStore(db_session.SessionLocal)


@pytest.fixture()
def manager(blob_store, record_store) -> EntityLifecycleManager:
    return EntityLifecycleManager(
        settings=get_settings(),
        blob_store=blob_store,
        record_store=record_store,
        tasks=DetachedTaskRunner(),
    )


@pytest.fixture()
def client(manager) -> Generator[TestClient, None, None]:
    """构建 FastAPI TestClient，并注入测试专用的编排器。"""
    app.dependency_overrides[get_entity_manager] = lambda: manager

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
