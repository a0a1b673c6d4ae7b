"""Error taxonomy shared by the services and the HTTP layer."""


class POSError(Exception):
    """Base class for every error raised by the order/sales core."""


class ValidationError(POSError):
    """A request was rejected locally; nothing was written."""


class UnknownMenuItem(POSError):
    def __init__(self, item_id: str):
        super().__init__(f"Unknown menu item: {item_id}")
        self.item_id = item_id


class TransportError(POSError):
    """A feed delivery or a store write failed."""


class PartialCheckoutFailure(TransportError):
    """The sale was recorded but resetting the table failed.

    Revenue is never lost: retrying the reset for ``table_id`` is safe, and a
    retried checkout with the same ``request_id`` reuses ``sale_id``.
    """

    def __init__(self, table_id: int, sale_id: int, request_id: str):
        super().__init__(
            f"Sale {sale_id} recorded but table {table_id} could not be reset"
        )
        self.table_id = table_id
        self.sale_id = sale_id
        self.request_id = request_id
