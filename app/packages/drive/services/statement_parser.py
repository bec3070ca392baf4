"""对账单解析：把上传的 CSV / Excel 对账单拆成逐行的字典，供写入交易账本与预览。"""

from __future__ import annotations

import csv
import io
import zipfile
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.packages.drive.core.exceptions import ValidationError

CSV_MIME_TYPES = {"text/csv", "application/csv"}
XLSX_MIME_TYPES = {
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

Table = Tuple[List[str], List[Dict[str, str]]]


def statement_kind(file_name: str, mime_type: Optional[str]) -> Optional[str]:
    """返回 ``csv`` / ``xlsx``，非对账单文件返回 None。"""
    lower = file_name.lower()
    if (mime_type or "") in CSV_MIME_TYPES or lower.endswith(".csv"):
        return "csv"
    if lower.endswith(".xlsx") or (mime_type or "") in XLSX_MIME_TYPES:
        return "xlsx"
    return None


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _clean_header(header: List[Any]) -> List[str]:
    return [str(name).strip() for name in header if name is not None and str(name).strip()]


def _clean_row(row: Dict[Any, Any]) -> Dict[str, str]:
    # 空列名（多余的分隔符、合并单元格）直接丢弃
    return {str(k).strip(): _cell_text(v) for k, v in row.items() if k is not None and str(k).strip()}


def read_csv(content: bytes) -> Table:
    text = content.decode("utf-8-sig", errors="replace")
    reader = csv.DictReader(io.StringIO(text))
    rows = []
    for raw in reader:
        row = _clean_row(raw)
        if any(row.values()):
            rows.append(row)
    return _clean_header(reader.fieldnames or []), rows


def read_xlsx(content: bytes) -> Table:
    workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = workbook.active
        row_iter = sheet.iter_rows(values_only=True)
        try:
            header = [_cell_text(cell) for cell in next(row_iter)]
        except StopIteration:
            return [], []
        rows = []
        for cells in row_iter:
            row = _clean_row(dict(zip(header, cells)))
            if any(row.values()):
                rows.append(row)
        return _clean_header(header), rows
    finally:
        workbook.close()


def read_table(file_name: str, content: bytes, mime_type: Optional[str] = None) -> Table:
    """按文件类型解析出表头与数据行；解析失败或格式不支持时抛 ``ValidationError``。"""
    kind = statement_kind(file_name, mime_type)
    try:
        if kind == "csv":
            return read_csv(content)
        if kind == "xlsx":
            return read_xlsx(content)
    except (csv.Error, zipfile.BadZipFile, InvalidFileException, KeyError) as exc:
        raise ValidationError(f"对账单解析失败: {file_name}") from exc
    raise ValidationError(f"不支持解析的对账单格式: {file_name}")


def parse_statement(file_name: str, content: bytes, mime_type: Optional[str] = None) -> List[Dict[str, str]]:
    return read_table(file_name, content, mime_type)[1]


def preview_statement(file_name: str, content: bytes, mime_type: Optional[str] = None) -> Dict[str, Any]:
    headers, rows = read_table(file_name, content, mime_type)
    return {"headers": headers, "rows": rows}
