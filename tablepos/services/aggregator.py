# =========================================================
# SALES AGGREGATION
#
# Pure group-by-sum over the full sales history. Rows are
# ordered by bucket key; keys are zero-padded and big-endian,
# so string order is chronological for every mode.
# =========================================================

from datetime import date, datetime, timezone
from decimal import Decimal

from tablepos.schemas.report import ReportMode, ReportRow, SalesReport


def sale_date(sale, today: date) -> date:
    """Calendar date a sale is reported under.

    Prefers the timestamp (as a UTC date), then the stored ``date`` string.
    A sale with neither is counted under ``today``.
    """
    if sale.timestamp is not None:
        moment = sale.timestamp
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return moment.date()

    if sale.date:
        return date.fromisoformat(sale.date)

    return today


def bucket_for(day: date, mode: ReportMode) -> tuple[str, str]:
    if mode == ReportMode.DAILY:
        key = day.isoformat()
        return key, key

    if mode == ReportMode.MONTHLY:
        return f"{day.year:04d}-{day.month:02d}", day.strftime("%b %Y")

    key = f"{day.year:04d}"
    return key, key


def aggregate_sales(sales, mode, today: date | None = None) -> SalesReport:
    mode = ReportMode(mode)
    today = today or datetime.now(timezone.utc).date()

    buckets: dict[str, ReportRow] = {}

    for sale in sales:
        key, label = bucket_for(sale_date(sale, today), mode)

        row = buckets.get(key)
        if row is None:
            row = ReportRow(bucket_key=key, label=label, sales=Decimal("0.00"))
            buckets[key] = row

        row.sales += Decimal(sale.total)

    rows = sorted(buckets.values(), key=lambda row: row.bucket_key)
    total_sales = sum((row.sales for row in rows), Decimal("0.00"))

    return SalesReport(mode=mode, rows=rows, total_sales=total_sales)
