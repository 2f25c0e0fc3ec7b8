"""Store and product lookups shared by the ledger and purchasing services."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from retail_ledger.context import RequestContext
from retail_ledger.errors import NotFound, UnitMismatch, ValidationFailed
from retail_ledger.models import Product, ProductUnit, Store
from retail_ledger.schemas.catalog import ProductCreate, ProductUnitCreate
from retail_ledger.services import audit, sequences

logger = logging.getLogger(__name__)


def get_store(db: Session, store_id: str) -> Store:
    store = db.exec(select(Store).where(Store.store_id == store_id)).first()
    if not store:
        raise NotFound(f"Store {store_id} not found", field="store_id")
    return store


def get_product(db: Session, store_id: str, product_id: str) -> Product:
    product = db.exec(
        select(Product).where(Product.store_id == store_id, Product.product_id == product_id)
    ).first()
    if not product:
        raise NotFound(f"Product {product_id} not found", field="product_id")
    return product


def list_products(db: Session, store_id: str, limit: int = 50, offset: int = 0) -> list[Product]:
    query = (
        select(Product)
        .where(Product.store_id == store_id)
        .order_by(Product.product_id)
        .offset(offset)
        .limit(limit)
    )
    return list(db.exec(query).all())


def unit_multiplier(db: Session, product: Product, unit_id: str) -> int:
    """Return how many base units one ``unit_id`` of ``product`` holds."""

    if unit_id == product.base_unit_id:
        return 1
    conversion = db.exec(
        select(ProductUnit).where(
            ProductUnit.store_id == product.store_id,
            ProductUnit.product_id == product.product_id,
            ProductUnit.unit_id == unit_id,
        )
    ).first()
    if not conversion:
        raise UnitMismatch(
            f"Unit {unit_id} is not configured for product {product.product_id}", field="unit_id"
        )
    return conversion.multiplier_to_base


def create_product(db: Session, ctx: RequestContext, payload: ProductCreate) -> Product:
    get_store(db, ctx.store_id)
    try:
        barcode = payload.barcode
        if barcode:
            sequences.reserve_internal_barcode(db, ctx.store_id, barcode)
        elif payload.generate_barcode:
            barcode = sequences.next_internal_barcode(db, ctx.store_id)
        product = Product(
            store_id=ctx.store_id,
            **payload.model_dump(exclude={"generate_barcode", "barcode"}),
            barcode=barcode,
        )
        db.add(product)
        db.flush()
        audit.record_event(
            db, ctx, "product.create", "product", product.product_id, sku=product.sku, barcode=barcode
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationFailed(
            f"Product {payload.product_id} or barcode {payload.barcode} already exists", field="product_id"
        ) from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(product)
    logger.info("Created product %s in store %s", product.product_id, ctx.store_id)
    return product


def add_product_unit(
    db: Session, ctx: RequestContext, product_id: str, payload: ProductUnitCreate
) -> ProductUnit:
    product = get_product(db, ctx.store_id, product_id)
    if payload.unit_id == product.base_unit_id:
        raise UnitMismatch("The base unit always converts 1:1", field="unit_id")
    unit = ProductUnit(
        store_id=ctx.store_id,
        product_id=product.product_id,
        unit_id=payload.unit_id,
        multiplier_to_base=payload.multiplier_to_base,
    )
    db.add(unit)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationFailed(
            f"Unit {payload.unit_id} already configured for product {product_id}", field="unit_id"
        ) from exc
    db.refresh(unit)
    return unit
