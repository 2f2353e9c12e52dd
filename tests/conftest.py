import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import date, datetime, time, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lineage_api.db.session import Base, get_db
from lineage_api.main import app
from lineage_api.models.entities import Item, Machine, ProductionRecord, Profile, RawMaterialConsumption


class ProductionGraph:
    """Builds production records and consumption links in the test database."""

    def __init__(self, db):
        self.db = db
        self.operator = Profile(full_name="Asha Operator")
        self.machine = Machine(machine_code="M1", machine_name="Slitter 1")
        db.add_all([self.operator, self.machine])
        db.flush()
        self.items: dict[str, Item] = {}
        self._clock = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(minutes=1)
        return self._clock

    def item(self, code: str, item_type: str) -> Item:
        if code not in self.items:
            item = Item(product_code=code, product_name=f"{code} roll", item_type=item_type)
            self.db.add(item)
            self.db.flush()
            self.items[code] = item
        return self.items[code]

    def produce(
        self,
        serial_number: str,
        *,
        code: str = "INT-1",
        item_type: str = "intermediate_type_1",
        weight_kg: float = 10.0,
        length_yards: float | None = None,
        with_machine: bool = True,
        consumes=(),
    ) -> ProductionRecord:
        record = ProductionRecord(
            serial_number=serial_number,
            item_id=self.item(code, item_type).id,
            operator_id=self.operator.id,
            machine_id=self.machine.id if with_machine else None,
            weight_kg=weight_kg,
            length_yards=length_yards,
            production_date=date(2025, 1, 10),
            production_time=time(14, 30),
            created_at=self._tick(),
        )
        self.db.add(record)
        self.db.flush()
        for consumed in consumes:
            if isinstance(consumed, str):
                consumed = (consumed,)
            self.consume(record, *consumed)
        return record

    def consume(
        self,
        record: ProductionRecord,
        serial_number: str,
        weight_kg: float | None = None,
        length_yards: float | None = None,
    ) -> None:
        self.db.add(
            RawMaterialConsumption(
                production_record_id=record.id,
                consumed_serial_number=serial_number,
                consumed_weight_kg=weight_kg,
                consumed_length_yards=length_yards,
                created_at=self._tick(),
            )
        )
        self.db.flush()


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, future=True)()
    yield session
    session.close()


@pytest.fixture()
def graph(db):
    return ProductionGraph(db)


@pytest.fixture()
def abcd(graph):
    """A (raw, 100kg) is split between B (40kg) and C (60kg); D is made from B."""
    graph.produce("A", code="RAW-1", item_type="raw_material", weight_kg=100.0, length_yards=500.0)
    graph.produce("B", weight_kg=40.0, consumes=[("A", 40.0, 200.0)])
    graph.produce("C", weight_kg=60.0, consumes=[("A", 60.0, 300.0)])
    graph.produce("D", code="FIN-1", item_type="finished_good", weight_kg=38.5, consumes=["B"])
    return graph


@pytest.fixture()
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
