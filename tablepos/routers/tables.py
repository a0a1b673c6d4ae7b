# =========================================================
# TABLES ROUTER
#
# Reads come from the reconciled view and may lag a write
# until the store echoes it back. Writes go straight to the
# store; the last save for a table wins.
# =========================================================

import asyncio
import logging

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status

from tablepos.core.config import settings
from tablepos.core.deps import get_context, http_error
from tablepos.core.errors import POSError
from tablepos.core.identity import get_current_actor
from tablepos.core.jwt import decode_access_token
from tablepos.core.rate_limiter import limiter
from tablepos.schemas.order import OrderLine, OrderSave, QuantityAdjust
from tablepos.schemas.sale import CheckoutRequest, CheckoutResponse
from tablepos.schemas.table import SaveResponse, Table, TableListResponse
from tablepos.services.cart import OrderCart
from tablepos.services.reconciler import TABLES
from tablepos.services.registry import check_table_id

logger = logging.getLogger("tablepos.tables")

router = APIRouter(prefix="/tables", tags=["Tables"])


def _tables_payload(ctx) -> dict:
    return TableListResponse(
        tables=ctx.registry.list_tables(),
        stale=ctx.reconciler.is_stale(TABLES),
    ).model_dump(mode="json")


# =========================================================
# LIST / GET
# =========================================================
@router.get("", response_model=TableListResponse)
def list_tables(
    ctx=Depends(get_context),
    actor_id: str = Depends(get_current_actor),
):
    return TableListResponse(
        tables=ctx.registry.list_tables(),
        stale=ctx.reconciler.is_stale(TABLES),
    )


@router.get("/{table_id}", response_model=Table)
def get_table(
    table_id: int,
    ctx=Depends(get_context),
    actor_id: str = Depends(get_current_actor),
):
    return ctx.registry.find_table(table_id)


# =========================================================
# SAVE ORDER
# =========================================================
@router.put("/{table_id}/order", response_model=SaveResponse)
async def save_order(
    table_id: int,
    order_data: OrderSave,
    ctx=Depends(get_context),
    actor_id: str = Depends(get_current_actor),
):
    registry, _ = ctx.for_actor(actor_id)

    try:
        # Prices always come from the menu, never from the client
        lines = []
        for entry in order_data.items:
            item = ctx.menu.get(entry.item_id)
            lines.append(
                OrderLine(id=item.id, name=item.name, price=item.price, quantity=entry.quantity)
            )

        result = await registry.save(table_id, lines)

    except POSError as exc:
        raise http_error(exc)

    return SaveResponse(
        table_id=result.table_id,
        status=result.status,
        total=result.total,
        items=result.items,
    )


@router.post("/{table_id}/order/adjust", response_model=SaveResponse)
async def adjust_order(
    table_id: int,
    adjust_data: QuantityAdjust,
    ctx=Depends(get_context),
    actor_id: str = Depends(get_current_actor),
):
    registry, _ = ctx.for_actor(actor_id)
    table = registry.find_table(table_id)
    cart = OrderCart.from_table(table)

    try:
        check_table_id(table_id, registry.table_count)
        existing = next((line for line in cart.lines if line.id == adjust_data.item_id), None)
        item = existing or ctx.menu.get(adjust_data.item_id)

        before = cart.lines
        cart.adjust_quantity(item, adjust_data.delta)

        # Nothing to write when the adjustment left the order as it was
        if cart.lines == before:
            return SaveResponse(
                table_id=table.table_id,
                status=table.status,
                total=table.total,
                items=len(table.order),
            )

        result = await registry.save(table_id, cart.lines)

    except POSError as exc:
        raise http_error(exc)

    return SaveResponse(
        table_id=result.table_id,
        status=result.status,
        total=result.total,
        items=result.items,
    )


# =========================================================
# CHECKOUT
# =========================================================
@router.post(
    "/{table_id}/checkout",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.CHECKOUT_RATE_LIMIT)
async def checkout_table(
    request: Request,
    table_id: int,
    checkout_data: CheckoutRequest | None = None,
    ctx=Depends(get_context),
    actor_id: str = Depends(get_current_actor),
):
    registry, checkout = ctx.for_actor(actor_id)
    table = registry.find_table(table_id)
    request_id = checkout_data.request_id if checkout_data else None

    try:
        result = await checkout.checkout(table_id, table.order, table.total, request_id=request_id)
    except POSError as exc:
        raise http_error(exc)

    return CheckoutResponse(
        sale_id=result.sale_id,
        table_id=result.table_id,
        total=result.total,
        request_id=result.request_id,
    )


@router.post("/{table_id}/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_table(
    table_id: int,
    ctx=Depends(get_context),
    actor_id: str = Depends(get_current_actor),
):
    _, checkout = ctx.for_actor(actor_id)

    try:
        await checkout.reset_table(table_id)
    except POSError as exc:
        raise http_error(exc)

    return None


# =========================================================
# LIVE FEED
# =========================================================
@router.websocket("/ws")
async def tables_ws(websocket: WebSocket, token: str = ""):
    if decode_access_token(token) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    ctx = websocket.app.state.context
    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()

    def on_change(feed, snapshot):
        if feed != TABLES:
            return
        try:
            loop.call_soon_threadsafe(updates.put_nowait, True)
        except RuntimeError:
            # Loop already closed
            pass

    async def watch_disconnect():
        # Client messages are ignored; only the disconnect matters
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                updates.put_nowait(False)
                return

    await websocket.accept()
    remove_listener = ctx.reconciler.add_listener(on_change)
    watcher = asyncio.create_task(watch_disconnect())

    try:
        await websocket.send_json(_tables_payload(ctx))
        while await updates.get():
            await websocket.send_json(_tables_payload(ctx))
        logger.info("Table feed client disconnected")
    except WebSocketDisconnect:
        logger.info("Table feed client disconnected")
    finally:
        watcher.cancel()
        remove_listener()
