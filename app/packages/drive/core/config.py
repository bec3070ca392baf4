"""配置模块：负责加载和缓存基于环境变量的应用设置。"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# 探测项目根目录并加载环境文件，支持通过 ENV_FILE/ENVIRONMENT 定制优先级。
def _detect_base_dir() -> Path:
    """向上遍历目录树，寻找包含 `app` 目录的项目根路径。"""
    current = Path(__file__).resolve()
    for candidate in current.parents:
        if (candidate / "app").is_dir():
            return candidate
    return current.parent


BASE_DIR = _detect_base_dir()


def _as_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _load_environment() -> None:
    env_file_override = os.getenv("ENV_FILE")
    if env_file_override:
        candidate = BASE_DIR / env_file_override
        if candidate.exists():
            load_dotenv(candidate, override=True, encoding="utf-8")
        return

    base_env = BASE_DIR / ".env"
    if base_env.exists():
        load_dotenv(base_env, override=False, encoding="utf-8")

    environment = os.getenv("ENVIRONMENT")
    if environment is None and _as_bool(os.getenv("DEBUG")):
        environment = "development"

    if environment:
        candidate_name = environment if environment.startswith(".env") else f".env.{environment}"
        candidate_path = BASE_DIR / candidate_name
        if candidate_path.exists():
            load_dotenv(candidate_path, override=True, encoding="utf-8")


_load_environment()


class Settings(BaseSettings):
    """
    封装服务运行所需的所有配置项，每个字段都可以通过环境变量重写。
    实体编排器在构造时接收该对象，运行期间不再读取环境变量。
    """

    project_name: str = Field(default="Entity Drive API", alias="PROJECT_NAME")
    api_v1_str: str = Field(default="/api/v1", alias="API_V1_STR")
    debug: bool = Field(default=False, alias="DEBUG")
    app_port: int = Field(default=8000, alias="APP_PORT")
    timezone: str = Field(default="UTC", alias="TIMEZONE")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="app.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # 对象存储
    blob_backend: str = Field(default="S3", alias="BLOB_BACKEND")
    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")
    aws_access_key_id: Optional[str] = Field(default=None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = Field(default=None, alias="AWS_SECRET_ACCESS_KEY")
    s3_bucket: str = Field(default="brmh", alias="BRMH_S3_BUCKET")
    s3_endpoint_url: Optional[str] = Field(default=None, alias="S3_ENDPOINT_URL")
    local_blob_root: str = Field(default="storage", alias="LOCAL_BLOB_ROOT")
    drive_root_folder: str = Field(default="brmh-drive", alias="DRIVE_ROOT_FOLDER")
    blob_list_page_size: int = Field(default=1000, alias="BLOB_LIST_PAGE_SIZE")

    # 记录存储（元数据目录 / 交易账本 / 对账单引用）
    record_backend: str = Field(default="HTTP", alias="RECORD_BACKEND")
    crud_api_base_url: str = Field(default="http://localhost:5001", alias="CRUD_API_BASE_URL")
    crud_api_token: Optional[str] = Field(default=None, alias="BACKEND_BEARER_TOKEN")
    crud_api_timeout: float = Field(default=30.0, alias="CRUD_API_TIMEOUT")
    database_url: str = Field(default="sqlite:///./entity_drive.db", alias="DATABASE_URL")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    drive_files_table: str = Field(default="brmh-drive-files", alias="DRIVE_FILES_TABLE")
    transactions_table: str = Field(default="brmh-entity-transactions", alias="ENTITY_TRANSACTIONS_TABLE")
    statements_table: str = Field(default="bank-statements", alias="AWS_DYNAMODB_STATEMENTS_TABLE")
    saga_runs_table: str = Field(default="brmh-entity-saga-runs", alias="SAGA_RUNS_TABLE")
    record_scan_max_page_size: int = Field(default=1000, alias="RECORD_SCAN_MAX_PAGE_SIZE")

    max_upload_bytes: int = Field(default=100 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    # 逗号分隔的上传 MIME 黑名单，默认不限制类型
    upload_denied_mime_types: str = Field(default="", alias="UPLOAD_DENIED_MIME_TYPES")
    ledger_write_concurrency: int = Field(default=20, alias="LEDGER_WRITE_CONCURRENCY")
    shutdown_drain_timeout: float = Field(default=10.0, alias="SHUTDOWN_DRAIN_TIMEOUT")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    def _resolve_path(self, raw: str) -> Path:
        path = Path(raw)
        if not path.is_absolute():
            path = BASE_DIR / path
        return path

    @property
    def log_directory(self) -> Path:
        """返回日志目录的绝对路径，支持相对路径配置。"""
        return self._resolve_path(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        """组合日志目录与文件名，得到完整的日志文件路径。"""
        return self.log_directory / self.log_file_name

    @property
    def local_blob_directory(self) -> Path:
        return self._resolve_path(self.local_blob_root)

    @property
    def denied_mime_types(self) -> frozenset:
        return frozenset(item.strip().lower() for item in self.upload_denied_mime_types.split(",") if item.strip())

    @property
    def timezone_info(self) -> ZoneInfo:
        """返回当前配置对应的时区信息，无法解析时回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")


@lru_cache
def get_settings() -> Settings:
    """返回单例化的配置对象，避免重复解析环境变量。"""
    return Settings()
