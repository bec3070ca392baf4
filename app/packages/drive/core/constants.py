"""常量定义：集中维护 HTTP 状态码与实体目录布局相关的固定值。"""

HTTP_STATUS_OK = 200
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_CONFLICT = 409
HTTP_STATUS_BAD_GATEWAY = 502

# 实体在元数据目录中的逻辑路径根
ENTITY_PATH_ROOT = "entities"
# 上传文件在实体下的固定子目录
ENTITY_FILES_DIR = "files"
# 文件夹占位对象名，仅用于让空目录在对象存储中“可见”
FOLDER_PLACEHOLDER = ".folder"
ROOT_PARENT_ID = "ROOT"

FOLDER_ID_PREFIX = "FOLDER_"
FILE_ID_PREFIX = "FILE_"

RECORD_TYPE_FOLDER = "folder"
RECORD_TYPE_FILE = "file"

# 无扩展名时按 MIME 补齐
MIME_DEFAULT_EXTENSIONS = {
    "text/csv": ".csv",
    "application/pdf": ".pdf",
    "application/vnd.ms-excel": ".xlsx",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
}
