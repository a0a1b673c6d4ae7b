"""
Pytest configuration, in-memory fake stores and fixtures for the POS core.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tablepos.core.errors import TransportError  # noqa: E402
from tablepos.database import Base  # noqa: E402
from tablepos.main import create_app  # noqa: E402
from tablepos.menu import MenuCatalog  # noqa: E402
from tablepos.schemas.order import OrderLine  # noqa: E402
from tablepos.schemas.sale import Sale  # noqa: E402
from tablepos.schemas.table import Table  # noqa: E402
from tablepos.services.checkout import CheckoutTransaction  # noqa: E402
from tablepos.services.reconciler import SyncReconciler  # noqa: E402
from tablepos.services.registry import TableRegistry  # noqa: E402
from tablepos.services.stores import SaleStore, SnapshotFeed, TableStore  # noqa: E402


class StepClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start=datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        moment = self.current
        self.current = moment + timedelta(minutes=1)
        return moment


class FakeTableStore(TableStore):
    """Table store kept in a dict.

    With ``auto_deliver`` off, writes are stored but not echoed to
    subscribers until ``deliver()`` is called.
    """

    def __init__(self, auto_deliver=True):
        self.docs: dict[int, Table] = {}
        self.auto_deliver = auto_deliver
        self.fail_writes = False
        self.fail_loads = False
        self.writes = []
        self.feed = SnapshotFeed("tables", self._load)

    def _load(self):
        if self.fail_loads:
            raise TransportError("tables feed unavailable")
        return list(self.docs.values())

    def subscribe(self, on_snapshot, on_error=None):
        return self.feed.subscribe(on_snapshot, on_error)

    def deliver(self):
        self.feed.publish()

    async def upsert_merge(self, table_id, fields):
        self._write("merge", table_id, fields)

    async def replace(self, table_id, fields):
        self._write("replace", table_id, fields)

    def _write(self, kind, table_id, fields):
        if self.fail_writes:
            raise TransportError(f"cannot write table {table_id}")

        current = self.docs.get(table_id) or Table(table_id=table_id)
        values = {key: value for key, value in fields.items() if key != "table_id"}
        self.docs[table_id] = Table(**{**current.model_dump(), **values})
        self.writes.append((kind, table_id, dict(fields)))

        if self.auto_deliver:
            self.feed.publish()


class FakeSaleStore(SaleStore):
    def __init__(self, auto_deliver=True, clock=None):
        self.sales: list[Sale] = []
        self.auto_deliver = auto_deliver
        self.fail_appends = False
        self.fail_loads = False
        self.clock = clock or StepClock()
        self.feed = SnapshotFeed("sales", self._load)

    def _load(self):
        if self.fail_loads:
            raise TransportError("sales feed unavailable")
        return list(self.sales)

    def subscribe(self, on_snapshot, on_error=None):
        return self.feed.subscribe(on_snapshot, on_error)

    def deliver(self):
        self.feed.publish()

    async def append(self, fields):
        if self.fail_appends:
            raise TransportError("cannot record sale")

        for sale in self.sales:
            if sale.request_id == fields["request_id"]:
                return sale.id

        now = self.clock()
        sale = Sale(
            id=len(self.sales) + 1,
            table_id=fields["table_id"],
            items=list(fields["items"]),
            total=fields["total"],
            timestamp=now,
            date=now.date().isoformat(),
            request_id=fields["request_id"],
            actor_id=fields.get("actor_id"),
        )
        self.sales.append(sale)

        if self.auto_deliver:
            self.feed.publish()
        return sale.id

    async def find(self, request_id):
        for sale in self.sales:
            if sale.request_id == request_id:
                return sale
        return None


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def menu():
    return MenuCatalog.load()


@pytest.fixture
def table_store():
    return FakeTableStore()


@pytest.fixture
def sale_store():
    return FakeSaleStore()


@pytest.fixture
def reconciler(table_store, sale_store):
    reconciler = SyncReconciler(table_store, sale_store)
    reconciler.start()
    yield reconciler
    reconciler.stop()


@pytest.fixture
def registry(reconciler, table_store):
    return TableRegistry(reconciler, table_store, table_count=10, actor_id="staff-1")


@pytest.fixture
def checkout(table_store, sale_store):
    return CheckoutTransaction(table_store, sale_store, table_count=10, actor_id="staff-1")


@pytest.fixture
def guarded_checkout(registry, table_store, sale_store):
    # Re-reads the table from the reconciled view once the table lock is held
    return CheckoutTransaction(
        table_store, sale_store, table_count=10, actor_id="staff-1", reader=registry.find_table
    )


@pytest.fixture
def order_lines(menu):
    paneer = menu.get("ns1")
    tea = menu.get("b7")
    return [
        OrderLine(id=paneer.id, name=paneer.name, price=paneer.price, quantity=1),
        OrderLine(id=tea.id, name=tea.name, price=tea.price, quantity=2),
    ]


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sql_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=sql_engine)


@pytest.fixture
def client(session_factory, sql_engine):
    app = create_app(session_factory=session_factory, bind=sql_engine, clock=StepClock())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    response = client.post("/session", json={"actor_id": "staff-1"})
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}
