from collections import Counter
from datetime import datetime
from io import BytesIO

import pandas as pd

from ..models import ROLES, Profile, Request, Transaction, User

EXCEL_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _parse_date(value, name):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a date in YYYY-MM-DD format")


def transactions_report(client, start_date, end_date, employer_id=None, merchant_id=None):
    """
    Transactions between two dates, optionally narrowed to one employer and/or merchant.
    Both dates are required and start_date must not be after end_date.
    """
    if not start_date or not end_date:
        raise ValueError("start_date and end_date are required")
    if _parse_date(start_date, "start_date") > _parse_date(end_date, "end_date"):
        raise ValueError("start_date must not be after end_date")
    rows = client.list_transactions(
        start_date=start_date,
        end_date=end_date,
        employer_id=employer_id,
        merchant_id=merchant_id,
    )
    return [Transaction.from_dict(r) for r in rows]


def report_totals(transactions):
    return {
        "count": len(transactions),
        "total_amount": round(sum(t.amount for t in transactions), 2),
    }


def to_excel(rows, sheet_name):
    """Workbook bytes for a list of dicts, one row per dict."""
    df = pd.DataFrame(rows)
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
    output.seek(0)
    return output.read()


def transactions_sheet(transactions, users):
    """Report rows with payer and payee names, ready for ``to_excel``."""
    sheet = []
    for t in transactions:
        paid_by = users.get(t.paid_by)
        paid_to = users.get(t.paid_to)
        sheet.append({
            "Transaction ID": t.id,
            "Paid By": paid_by.display_name if paid_by else t.paid_by,
            "Paid To": paid_to.display_name if paid_to else t.paid_to,
            "Store": t.store or "",
            "Amount": t.amount,
            "Time": t.time_stamp or "",
        })
    return sheet


def statistics(client):
    """Counts of users per type, profiles per role and status, and requests per status."""
    users = [User.from_dict(u) for u in client.list_users()]
    user_counts = Counter(u.user_type or "unknown" for u in users)

    profiles = {}
    for role in ROLES:
        rows = [Profile.from_dict(p, role) for p in client.list_profiles(role)]
        profiles[role] = {
            "total": len(rows),
            "by_status": dict(Counter((p.status or "unknown").lower() for p in rows)),
            "total_float": round(sum(p.float for p in rows), 2),
        }

    requests = [Request.from_dict(r) for r in client.list_requests()]
    return {
        "users": {"total": len(users), "by_type": dict(user_counts)},
        "profiles": profiles,
        "requests": {"total": len(requests), "by_status": dict(Counter(r.status or "unknown" for r in requests))},
    }
