"""Spreadsheet export of a household's transactions."""
import io
from datetime import datetime

import pandas as pd

from models import TransactionType

EXPENSE_COLUMNS = ["Title", "Amount", "Type", "Category", "Date", "Created By", "Description"]


def _row(txn):
    return {
        "Title": txn.title or "",
        "Amount": float(txn.amount),
        "Type": txn.type.value,
        "Category": txn.category.name if txn.category else "",
        "Date": txn.date.isoformat(),
        "Created By": txn.created_by.full_name if txn.created_by else "Unknown User",
        "Description": txn.description or "",
    }


def summary_rows(household, transactions):
    """Budget / spent / remaining metrics over ``transactions``."""
    budget = sum(float(c.monthly_budget or 0) for c in household.categories if c.is_active)
    total_spent = sum(float(t.amount) for t in transactions if t.type is TransactionType.EXPENSE)
    total_income = sum(float(t.amount) for t in transactions if t.type is TransactionType.INCOME)
    return [
        {"Metric": "Budget", "Value": budget},
        {"Metric": "Total Spent", "Value": total_spent},
        {"Metric": "Total Income", "Value": total_income},
        {"Metric": "Remaining", "Value": budget - total_spent},
    ]


def build_workbook(household, transactions):
    """An .xlsx workbook (Expenses + Summary sheets) as an in-memory buffer."""
    df = pd.DataFrame([_row(t) for t in transactions], columns=EXPENSE_COLUMNS)
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Expenses", index=False)
        pd.DataFrame(summary_rows(household, transactions)).to_excel(writer, sheet_name="Summary", index=False)
    buf.seek(0)
    return buf


def export_filename(period, now=None):
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"report_{period}_{stamp}.xlsx"
