import os
from collections.abc import Generator
from typing import Any

os.environ.setdefault("DB__CONN", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from retail_ledger.api.deps import get_db
from retail_ledger.app import create_application
from retail_ledger.context import RequestContext
from retail_ledger.database import create_db_engine
from retail_ledger.models import Currency, Product, ProductUnit, Store, VatMode


@pytest.fixture(name="db_engine")
def db_engine_fixture(tmp_path) -> Generator[Any, None, None]:
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="db")
def db_fixture(db_engine) -> Generator[Session, None, None]:
    with Session(db_engine) as session:
        yield session


@pytest.fixture(name="ctx")
def ctx_fixture() -> RequestContext:
    return RequestContext(
        store_id="S001",
        user_id="clerk",
        permissions=frozenset({"inventory.in", "inventory.adjust", "inventory.create", "products.create"}),
    )


@pytest.fixture(name="store")
def store_fixture(db: Session) -> Store:
    store = Store(
        store_id="S001",
        name="Main Store",
        currency=Currency.LAK,
        vat_enabled=True,
        vat_rate=700,
        vat_mode=VatMode.EXCLUSIVE,
    )
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


@pytest.fixture(name="product")
def product_fixture(db: Session, store: Store) -> Product:
    product = Product(
        store_id=store.store_id,
        product_id="P001",
        sku="WATER-500",
        name="Bottled Water",
        base_unit_id="piece",
    )
    db.add(product)
    db.add(ProductUnit(store_id=store.store_id, product_id="P001", unit_id="pack", multiplier_to_base=12))
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture(name="client")
def client_fixture(db_engine):  # type: ignore[annotations]
    app = create_application()

    def get_db_override() -> Generator[Session, None, None]:
        with Session(db_engine) as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    app.dependency_overrides[get_db] = get_db_override

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
