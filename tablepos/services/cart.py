# tablepos/services/cart.py

from decimal import Decimal

from tablepos.schemas.order import OrderLine, order_total


class OrderCart:
    """In-progress order for one table.

    Mutations are local. Nothing reaches the store until the caller saves or
    checks out the cart's ``lines``.
    """

    def __init__(self, table_id: int, lines=()):
        self.table_id = table_id
        self._lines: dict[str, OrderLine] = {}
        for line in lines:
            self._lines[line.id] = line

    @classmethod
    def from_table(cls, table) -> "OrderCart":
        return cls(table.table_id, table.order)

    def adjust_quantity(self, item, delta: int) -> None:
        """Apply ``delta`` to the line for ``item``.

        ``item`` is anything with ``id``, ``name`` and ``price`` (a menu item
        or an existing order line). A line whose quantity drops to zero or
        below is removed. An absent item is added with quantity 1 for any
        positive delta; a non-positive delta on an absent item does nothing.
        """
        existing = self._lines.get(item.id)

        if existing is not None:
            new_quantity = existing.quantity + delta
            if new_quantity <= 0:
                del self._lines[item.id]
            else:
                self._lines[item.id] = existing.model_copy(update={"quantity": new_quantity})
        elif delta > 0:
            self._lines[item.id] = OrderLine(
                id=item.id,
                name=item.name,
                price=item.price,
                quantity=1,
            )

    def quantity_of(self, item_id: str) -> int:
        line = self._lines.get(item_id)
        return line.quantity if line else 0

    @property
    def lines(self) -> list[OrderLine]:
        return list(self._lines.values())

    @property
    def total(self) -> Decimal:
        return order_total(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)
