# Overview: Spreadsheet (xlsx) exports of the cash ledger and the sales history.

"""
Spreadsheet exports.

Pure projections of already computed data onto openpyxl workbooks; nothing
here queries beyond what the ledger and history services return. Amounts
are written as numbers (not strings) so the sheets can be summed.
"""

from __future__ import annotations

import io
from decimal import Decimal

from openpyxl import Workbook
from openpyxl.styles import Font

from ..values import to_utc_z
from .cash_register_service import LedgerSnapshot


XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

LEDGER_HEADERS = [
    "Payment method", "Total sales", "Number of sales", "Total withdrawals",
    "Total incomes", "Available", "Average sale", "Percentage",
]

SALES_HEADERS = ["Sale", "Date", "Status", "Payment methods", "Items", "Total"]


def _num(value) -> float:
    return float(Decimal(str(value))) if value is not None else 0.0


def _write_header(sheet, headers: list[str]) -> None:
    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    sheet.freeze_panes = "A2"


def _to_bytes(workbook: Workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def ledger_workbook(snapshot: LedgerSnapshot) -> Workbook:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Cash register"
    _write_header(sheet, LEDGER_HEADERS)

    for row in snapshot.rows:
        sheet.append([
            row.name,
            _num(row.total_sales),
            row.number_of_sales,
            _num(row.total_withdrawals),
            _num(row.total_incomes),
            _num(row.available),
            _num(row.average_sale_amount),
            _num(row.percentage),
        ])

    sheet.append([
        "TOTAL",
        _num(snapshot.total_sales),
        sum(r.number_of_sales for r in snapshot.rows),
        _num(snapshot.total_withdrawals),
        _num(snapshot.total_incomes),
        _num(snapshot.net_available),
        None,
        100.0 if snapshot.rows and snapshot.total_sales else 0.0,
    ])
    for cell in sheet[sheet.max_row]:
        cell.font = Font(bold=True)

    sheet.column_dimensions["A"].width = 24
    return workbook


def sales_workbook(sales: list[dict]) -> Workbook:
    """``sales`` are Sale.to_dict() payloads (with items and payment summaries)."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Sales"
    _write_header(sheet, SALES_HEADERS)

    for sale in sales:
        methods = ", ".join(
            f"{summary['name']}: {summary['amount']}" if summary.get("amount") is not None else summary["name"]
            for summary in sale.get("payment_summaries", [])
        )
        items = ", ".join(
            f"{item['product_name']} x{item['quantity']}" for item in sale.get("items", [])
        )
        sheet.append([
            sale["id"],
            sale.get("created_at"),
            sale["status"],
            methods,
            items,
            _num(sale["total_amount"]),
        ])

    sheet.column_dimensions["D"].width = 32
    sheet.column_dimensions["E"].width = 48
    return workbook


def ledger_export(snapshot: LedgerSnapshot) -> tuple[bytes, str]:
    stamp = to_utc_z(snapshot.loaded_at).replace(":", "").replace("-", "")
    return _to_bytes(ledger_workbook(snapshot)), f"cash_register_{stamp}.xlsx"


def sales_export(sales: list[dict]) -> tuple[bytes, str]:
    return _to_bytes(sales_workbook(sales)), "sales_history.xlsx"
