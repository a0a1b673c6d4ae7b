# tablepos/services/context.py

import logging
from dataclasses import dataclass

from tablepos.core.config import Settings, settings as default_settings
from tablepos.menu import MenuCatalog
from tablepos.services.checkout import CheckoutTransaction
from tablepos.services.reconciler import SyncReconciler
from tablepos.services.registry import TableRegistry
from tablepos.services.sql_store import SqlSaleStore, SqlTableStore
from tablepos.services.stores import SaleStore, TableStore, utc_now

logger = logging.getLogger("tablepos.context")


@dataclass
class POSContext:
    """Everything one process needs to serve tables, checkout and reports.

    One reconciler per context owns the local table and sale views.
    """

    settings: Settings
    menu: MenuCatalog
    table_store: TableStore
    sale_store: SaleStore
    reconciler: SyncReconciler
    registry: TableRegistry
    checkout: CheckoutTransaction

    def for_actor(self, actor_id: str) -> tuple[TableRegistry, CheckoutTransaction]:
        return self.registry.bind(actor_id), self.checkout.bind(actor_id)

    async def start(self) -> None:
        self.reconciler.start()
        if self.reconciler.tables_loaded:
            await self.registry.ensure_initialized()
        else:
            logger.warning("Tables feed unavailable at startup; skipping initialization")

    def stop(self) -> None:
        self.reconciler.stop()


def create_context(table_store: TableStore, sale_store: SaleStore, settings: Settings | None = None,
                   menu: MenuCatalog | None = None, on_error=None) -> POSContext:
    settings = settings or default_settings
    menu = menu or MenuCatalog.load(settings.MENU_FILE)
    reconciler = SyncReconciler(table_store, sale_store, on_error=on_error)
    registry = TableRegistry(reconciler, table_store, settings.TABLE_COUNT)

    return POSContext(
        settings=settings,
        menu=menu,
        table_store=table_store,
        sale_store=sale_store,
        reconciler=reconciler,
        registry=registry,
        checkout=CheckoutTransaction(
            table_store, sale_store, settings.TABLE_COUNT, reader=registry.find_table
        ),
    )


def build_context(session_factory, settings: Settings | None = None, clock=utc_now, **kwargs) -> POSContext:
    return create_context(
        SqlTableStore(session_factory, clock=clock),
        SqlSaleStore(session_factory, clock=clock),
        settings=settings,
        **kwargs,
    )
