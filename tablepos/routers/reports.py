# tablepos/routers/reports.py

from fastapi import APIRouter, Depends, Query

from tablepos.core.deps import get_context
from tablepos.core.identity import get_current_actor
from tablepos.schemas.report import ReportMode, SalesReport
from tablepos.services.aggregator import aggregate_sales
from tablepos.services.reconciler import SALES

router = APIRouter(prefix="/reports", tags=["Reports"])


# =========================================================
# SALES REPORT (DAILY / MONTHLY / YEARLY)
# =========================================================
@router.get("/sales", response_model=SalesReport)
def sales_report(
    mode: ReportMode = Query(ReportMode.DAILY),
    ctx=Depends(get_context),
    actor_id: str = Depends(get_current_actor),
):
    # Recomputed from the full history on every request
    report = aggregate_sales(ctx.reconciler.sales, mode)
    report.stale = ctx.reconciler.is_stale(SALES)
    return report
