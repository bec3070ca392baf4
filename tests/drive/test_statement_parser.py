"""对账单解析：CSV（含 BOM）与 XLSX 都按表头拆成逐行字典。"""

import io

import pytest
from openpyxl import Workbook

from app.packages.drive.core.exceptions import ValidationError
from app.packages.drive.services.statement_parser import parse_statement, preview_statement, statement_kind


def test_statement_kind():
    assert statement_kind("jan.csv", None) == "csv"
    assert statement_kind("jan", "text/csv") == "csv"
    assert statement_kind("jan.xlsx", "application/octet-stream") == "xlsx"
    assert statement_kind("report.pdf", "application/pdf") is None


def test_parse_csv_skips_blank_rows_and_bom():
    content = "\ufeffDate,Description,Amount\n2024-01-01, Coffee ,3.50\n,,\n2024-01-02,Books,12.00\n".encode("utf-8")
    rows = parse_statement("jan.csv", content, "text/csv")
    assert rows == [
        {"Date": "2024-01-01", "Description": "Coffee", "Amount": "3.50"},
        {"Date": "2024-01-02", "Description": "Books", "Amount": "12.00"},
    ]


def test_parse_xlsx_uses_first_row_as_header():
    wb = Workbook()
    ws = wb.active
    ws.append(["Date", "Amount", None])
    ws.append(["2024-01-01", 3.5, "ignored"])
    ws.append([None, None, None])
    ws.append(["2024-01-02", 12, None])
    buf = io.BytesIO()
    wb.save(buf)

    rows = parse_statement("jan.xlsx", buf.getvalue())
    assert rows == [{"Date": "2024-01-01", "Amount": "3.5"}, {"Date": "2024-01-02", "Amount": "12"}]


def test_parse_broken_xlsx_raises_validation_error():
    with pytest.raises(ValidationError):
        parse_statement("jan.xlsx", b"definitely not a zip archive")


def test_parse_unknown_kind_raises_validation_error():
    with pytest.raises(ValidationError):
        parse_statement("notes.txt", b"hello", "text/plain")


def test_preview_keeps_header_order_and_drops_blank_columns():
    content = b"Date,,Amount\n2024-01-01,x,3.50\n"
    assert preview_statement("jan.csv", content) == {
        "headers": ["Date", "Amount"],
        "rows": [{"Date": "2024-01-01", "Amount": "3.50"}],
    }
    assert preview_statement("empty.csv", b"") == {"headers": [], "rows": []}
