"""HTTP 接口：统一响应结构与错误码映射。"""

from fastapi.testclient import TestClient

CSV = b"Date,Description,Amount\n2024-01-01,Coffee,3.50\n"


def _create(client: TestClient, name: str = "Shopify") -> dict:
    resp = client.post("/api/v1/entities", json={"userId": "u1", "entityName": name})
    assert resp.status_code == 200
    return resp.json()


def test_health_and_request_id(client: TestClient):
    resp = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert resp.status_code == 200
    assert resp.json() == {"msg": "OK", "data": {"status": "healthy"}, "code": 200}
    assert resp.headers["X-Request-ID"] == "req-123"


def test_entity_lifecycle_over_http(client: TestClient):
    # 1. 创建
    body = _create(client)
    assert body["code"] == 200
    assert body["data"]["success"] is True
    assert body["data"]["id"] == "FOLDER_u1_shopify"
    assert body["data"]["report"]["operation"] == "entity.create"

    # 2. 列表
    resp = client.get("/api/v1/entities", params={"userId": "u1"})
    assert resp.json()["data"] == {"entities": ["Shopify"]}

    # 3. 重命名
    resp = client.post("/api/v1/entities/rename", json={"userId": "u1", "oldName": "Shopify", "newName": "Shopify Inc"})
    assert resp.status_code == 200
    assert client.get("/api/v1/entities", params={"userId": "u1"}).json()["data"]["entities"] == ["Shopify Inc"]

    # 4. 删除（DELETE 携带 JSON 请求体）
    resp = client.request("DELETE", "/api/v1/entities", json={"userId": "u1", "entityName": "Shopify Inc"})
    assert resp.status_code == 200
    assert client.get("/api/v1/entities", params={"userId": "u1"}).json()["data"]["entities"] == []


def test_blank_name_returns_400(client: TestClient):
    resp = client.post("/api/v1/entities", json={"userId": "u1", "entityName": "   "})
    assert resp.status_code == 400
    assert resp.json()["code"] == 400
    assert "entityName" in resp.json()["msg"]


def test_missing_field_returns_422(client: TestClient):
    resp = client.post("/api/v1/entities", json={"userId": "u1"})
    assert resp.status_code == 422


def test_file_endpoints(client: TestClient):
    _create(client)

    # 1. 上传
    resp = client.post(
        "/api/v1/entity-files/upload",
        data={"userId": "u1", "entityName": "Shopify"},
        files={"file": ("jan.csv", CSV, "text/csv")},
    )
    assert resp.status_code == 200
    file_id = resp.json()["data"]["fileId"]
    assert resp.json()["data"]["ledgerRows"] == 1

    # 2. 列表与详情
    listed = client.get("/api/v1/entity-files", params={"userId": "u1", "entityName": "Shopify"}).json()["data"]
    assert [f["id"] for f in listed] == [file_id]
    detail = client.get(f"/api/v1/entity-files/{file_id}", params={"userId": "u1"})
    assert detail.json()["data"]["name"] == "jan.csv"

    # 3. 交易核对
    checked = client.get("/api/v1/entities/check-transactions", params={"userId": "u1", "entityName": "Shopify"})
    assert checked.json()["data"]["entityTransactions"] == 1

    # 4. 重命名
    resp = client.post("/api/v1/entity-files/rename", json={"userId": "u1", "fileId": file_id, "newName": "jan-2024.csv"})
    assert resp.status_code == 200
    assert resp.json()["data"]["s3Key"].endswith("/entities/Shopify/files/jan-2024.csv")

    # 5. 删除
    resp = client.post("/api/v1/entity-files/delete", json={"userId": "u1", "fileId": file_id})
    assert resp.status_code == 200
    assert resp.json()["data"]["fileId"] == file_id


def test_unknown_file_returns_404(client: TestClient):
    resp = client.get("/api/v1/entity-files/FILE_missing", params={"userId": "u1"})
    assert resp.status_code == 404
    assert resp.json() == {"msg": "文件不存在", "data": None, "code": 404}


def test_folder_endpoints(client: TestClient):
    _create(client)
    resp = client.post("/api/v1/entities/folders", json={"userId": "u1", "entityName": "Shopify", "folderName": "Invoices"})
    assert resp.status_code == 200

    resp = client.get("/api/v1/entities/folders", params={"userId": "u1", "entityName": "Shopify"})
    assert resp.json()["data"] == {"folders": ["Invoices"]}


def test_upload_with_custom_name_and_preview(client: TestClient):
    _create(client)
    resp = client.post(
        "/api/v1/entity-files/upload",
        data={"userId": "u1", "entityName": "Shopify", "customName": "january.csv"},
        files={"file": ("export.csv", CSV, "text/csv")},
    )
    assert resp.status_code == 200
    s3_key = resp.json()["data"]["s3Key"]
    assert s3_key.endswith("/entities/Shopify/files/january.csv")

    preview = client.get("/api/v1/entity-files/preview", params={"userId": "u1", "s3Key": s3_key})
    assert preview.status_code == 200
    assert preview.json()["data"] == {
        "headers": ["Date", "Description", "Amount"],
        "rows": [{"Date": "2024-01-01", "Description": "Coffee", "Amount": "3.50"}],
    }


def test_preview_without_key_returns_400(client: TestClient):
    resp = client.get("/api/v1/entity-files/preview", params={"userId": "u1"})
    assert resp.status_code == 400
    assert "s3Key" in resp.json()["msg"]
