# tablepos/routers/sales.py

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from tablepos.core.deps import get_context
from tablepos.core.identity import get_current_actor
from tablepos.schemas.sale import Sale

router = APIRouter(prefix="/sales", tags=["Sales"])

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(sale: Sale):
    moment = sale.timestamp
    if moment is None:
        return _EPOCH
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


# =========================================================
# LIST SALES (NEWEST FIRST)
# =========================================================
@router.get("", response_model=list[Sale])
def list_sales(
    ctx=Depends(get_context),
    actor_id: str = Depends(get_current_actor),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    sales = sorted(ctx.reconciler.sales, key=_sort_key, reverse=True)
    return sales[offset:offset + limit]
