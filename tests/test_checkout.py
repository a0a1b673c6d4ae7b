"""
Tests for the checkout transaction: validation, sale-first ordering,
partial failure and retries.
"""

import asyncio
from decimal import Decimal

import pytest

from tablepos.core.errors import PartialCheckoutFailure, TransportError, ValidationError
from tablepos.schemas.table import TableStatus


@pytest.mark.anyio
class TestCheckout:
    async def test_empty_order_rejected_before_any_write(self, checkout, table_store, sale_store):
        with pytest.raises(ValidationError):
            await checkout.checkout(1, [], Decimal("0"))

        assert sale_store.sales == []
        assert table_store.writes == []

    async def test_records_sale_and_resets_table(self, registry, checkout, sale_store, reconciler, order_lines):
        await registry.save(4, order_lines)
        table = registry.find_table(4)

        result = await checkout.checkout(4, table.order, table.total)

        assert len(sale_store.sales) == 1
        sale = sale_store.sales[0]
        assert sale.id == result.sale_id
        assert sale.table_id == 4
        assert sale.total == Decimal("240.00")
        assert [(line.id, line.quantity) for line in sale.items] == [("ns1", 1), ("b7", 2)]
        assert sale.date == sale.timestamp.date().isoformat()
        assert sale.actor_id == "staff-1"

        table = registry.find_table(4)
        assert table.status == TableStatus.CLOSED
        assert table.order == []
        assert table.total == Decimal("0")

        assert [s.id for s in reconciler.sales] == [result.sale_id]

    async def test_sale_is_a_snapshot(self, registry, checkout, sale_store, menu, order_lines):
        await registry.save(4, order_lines)
        table = registry.find_table(4)
        await checkout.checkout(4, table.order, table.total)

        await registry.save(4, order_lines[:1])

        assert len(sale_store.sales[0].items) == 2
        assert sale_store.sales[0].total == Decimal("240.00")

    async def test_total_mismatch_rejected(self, checkout, sale_store, order_lines):
        with pytest.raises(ValidationError):
            await checkout.checkout(1, order_lines, Decimal("1.00"))

        assert sale_store.sales == []

    async def test_sale_is_written_before_reset(self, checkout, table_store, sale_store, order_lines):
        order = []
        real_append = sale_store.append
        real_merge = table_store.upsert_merge

        async def tracked_append(fields):
            order.append("sale")
            return await real_append(fields)

        async def tracked_merge(table_id, fields):
            order.append("reset")
            return await real_merge(table_id, fields)

        sale_store.append = tracked_append
        table_store.upsert_merge = tracked_merge

        await checkout.checkout(1, order_lines, Decimal("240.00"))

        assert order == ["sale", "reset"]

    async def test_failed_sale_append_writes_nothing(self, registry, checkout, table_store, sale_store, order_lines):
        await registry.save(2, order_lines)
        writes = len(table_store.writes)
        sale_store.fail_appends = True

        with pytest.raises(TransportError) as exc_info:
            await checkout.checkout(2, order_lines, Decimal("240.00"))

        assert not isinstance(exc_info.value, PartialCheckoutFailure)
        assert len(table_store.writes) == writes
        assert registry.find_table(2).status == TableStatus.OPEN

    async def test_reset_failure_keeps_revenue(self, registry, checkout, table_store, sale_store, order_lines):
        await registry.save(2, order_lines)
        table_store.fail_writes = True

        with pytest.raises(PartialCheckoutFailure) as exc_info:
            await checkout.checkout(2, order_lines, Decimal("240.00"), request_id="req-1")

        failure = exc_info.value
        assert failure.table_id == 2
        assert failure.request_id == "req-1"
        assert failure.sale_id == sale_store.sales[0].id
        assert len(sale_store.sales) == 1
        # Table still shows open until the reset is retried
        assert registry.find_table(2).status == TableStatus.OPEN

        table_store.fail_writes = False
        await checkout.reset_table(2)
        await checkout.reset_table(2)

        assert registry.find_table(2).status == TableStatus.CLOSED
        assert registry.find_table(2).total == Decimal("0")

    async def test_retry_with_same_request_id_does_not_double_record(
        self, registry, checkout, table_store, sale_store, order_lines
    ):
        await registry.save(2, order_lines)
        table_store.fail_writes = True
        with pytest.raises(PartialCheckoutFailure):
            await checkout.checkout(2, order_lines, Decimal("240.00"), request_id="req-7")

        table_store.fail_writes = False
        result = await checkout.checkout(2, order_lines, Decimal("240.00"), request_id="req-7")

        assert len(sale_store.sales) == 1
        assert result.sale_id == sale_store.sales[0].id
        assert registry.find_table(2).status == TableStatus.CLOSED

    async def test_generated_request_ids_are_distinct(self, checkout, sale_store, order_lines):
        first = await checkout.checkout(1, order_lines, Decimal("240.00"))
        second = await checkout.checkout(1, order_lines, Decimal("240.00"))

        assert first.request_id != second.request_id
        assert len(sale_store.sales) == 2

    async def test_reset_unknown_table_rejected(self, checkout):
        with pytest.raises(ValidationError):
            await checkout.reset_table(99)

    async def test_retry_after_success_returns_recorded_sale(self, registry, checkout, sale_store, order_lines):
        await registry.save(2, order_lines)
        first = await checkout.checkout(2, order_lines, Decimal("240.00"), request_id="req-9")

        # The table is closed now, so a retry sees an empty order
        again = await checkout.checkout(2, [], Decimal("0"), request_id="req-9")

        assert again == first
        assert len(sale_store.sales) == 1


@pytest.mark.anyio
class TestConcurrentCheckout:
    """Test checkouts of one table racing each other."""

    async def test_double_checkout_records_one_sale(self, registry, guarded_checkout, sale_store, order_lines):
        await registry.save(3, order_lines)
        table = registry.find_table(3)

        real_append = sale_store.append

        async def slow_append(fields):
            await asyncio.sleep(0)
            return await real_append(fields)

        sale_store.append = slow_append

        results = await asyncio.gather(
            guarded_checkout.checkout(3, table.order, table.total),
            guarded_checkout.bind("staff-2").checkout(3, table.order, table.total),
            return_exceptions=True,
        )

        assert len(sale_store.sales) == 1
        assert len([r for r in results if isinstance(r, ValidationError)]) == 1
        assert registry.find_table(3).status == TableStatus.CLOSED

    async def test_closed_table_rejected(self, guarded_checkout, sale_store, order_lines):
        with pytest.raises(ValidationError):
            await guarded_checkout.checkout(5, order_lines, Decimal("240.00"))

        assert sale_store.sales == []

    async def test_retry_does_not_clear_a_new_order(self, registry, guarded_checkout, sale_store, order_lines):
        await registry.save(6, order_lines)
        first = await guarded_checkout.checkout(6, order_lines, Decimal("240.00"), request_id="req-6")

        await registry.save(6, order_lines[:1])
        again = await guarded_checkout.checkout(6, [], Decimal("0"), request_id="req-6")

        assert again.sale_id == first.sale_id
        assert len(sale_store.sales) == 1
        assert registry.find_table(6).status == TableStatus.OPEN

    async def test_retry_after_partial_failure_clears_table(
        self, registry, guarded_checkout, table_store, sale_store, order_lines
    ):
        await registry.save(7, order_lines)
        table_store.fail_writes = True
        with pytest.raises(PartialCheckoutFailure):
            await guarded_checkout.checkout(7, order_lines, Decimal("240.00"), request_id="req-7")

        table_store.fail_writes = False
        await guarded_checkout.checkout(7, order_lines, Decimal("240.00"), request_id="req-7")

        assert len(sale_store.sales) == 1
        assert registry.find_table(7).status == TableStatus.CLOSED
