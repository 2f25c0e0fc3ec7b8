"""Append-only stock movements and the on-hand balance they drive.

A movement is written once and never edited; corrections are new movements.
The balance row for a (store, product) pair is changed in the same transaction
as the movement, through one conditional ``UPDATE`` so concurrent movements
cannot interleave a read and a write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import and_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from retail_ledger.config import get_settings
from retail_ledger.context import RequestContext
from retail_ledger.errors import (
    ConcurrencyConflict,
    InsufficientStock,
    InvalidQuantity,
    MissingAdjustMode,
    ProductInactive,
    ValidationFailed,
)
from retail_ledger.models import (
    AdjustMode,
    MovementType,
    Product,
    RefType,
    StockBalance,
    StockMovement,
    Store,
    utcnow,
)
from retail_ledger.services import audit, catalog

logger = logging.getLogger(__name__)

NOTE_MAX_LENGTH = 240


@dataclass(frozen=True, slots=True)
class Balance:
    store_id: str
    product_id: str
    on_hand: int
    reserved: int

    @property
    def available(self) -> int:
        return self.on_hand - self.reserved


@dataclass(frozen=True, slots=True)
class LowStockItem:
    product_id: str
    sku: str
    name: str
    on_hand: int
    reserved: int
    threshold: int

    @property
    def available(self) -> int:
        return self.on_hand - self.reserved


def required_permission(movement_type: MovementType | str) -> str:
    """Permission a caller needs before recording ``movement_type``."""

    if MovementType(movement_type) is MovementType.ADJUST:
        return "inventory.adjust"
    return "inventory.in"


def signed_delta(movement_type: MovementType, qty_base: int, adjust_mode: Optional[AdjustMode]) -> int:
    if movement_type is MovementType.ADJUST and adjust_mode is AdjustMode.DECREASE:
        return -qty_base
    return qty_base


def _validate(
    movement_type: MovementType, qty: int, adjust_mode: Optional[AdjustMode], note: Optional[str]
) -> None:
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise InvalidQuantity("Quantity must be a positive integer", field="qty")
    if movement_type is MovementType.ADJUST and adjust_mode is None:
        raise MissingAdjustMode("ADJUST movements need an adjust_mode", field="adjust_mode")
    if note and len(note) > NOTE_MAX_LENGTH:
        raise ValidationFailed(f"Note is longer than {NOTE_MAX_LENGTH} characters", field="note")


def _apply_delta(db: Session, store_id: str, product_id: str, delta: int) -> None:
    changed = db.exec(
        update(StockBalance)
        .where(
            StockBalance.store_id == store_id,
            StockBalance.product_id == product_id,
            StockBalance.on_hand + delta >= 0,
        )
        .values(on_hand=StockBalance.on_hand + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if changed.rowcount:
        return

    existing = db.exec(
        select(StockBalance.on_hand).where(
            StockBalance.store_id == store_id, StockBalance.product_id == product_id
        )
    ).first()
    if existing is not None or delta < 0:
        raise InsufficientStock(
            f"Product {product_id} has {existing or 0} on hand, cannot remove {-delta}",
            field="qty",
            payload={"on_hand": existing or 0},
        )

    db.add(StockBalance(store_id=store_id, product_id=product_id, on_hand=delta))
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConcurrencyConflict(
            f"Balance for product {product_id} was created by another request", field="product_id"
        ) from exc


def post_movement(
    db: Session,
    ctx: RequestContext,
    product: Product,
    movement_type: MovementType,
    qty: int,
    unit_id: str,
    adjust_mode: Optional[AdjustMode] = None,
    note: Optional[str] = None,
    ref_type: Optional[RefType] = None,
    ref_id: Optional[str] = None,
    require_active: bool = True,
) -> StockMovement:
    """Stage one movement and its balance change without committing.

    Used directly by flows that post several movements in one transaction,
    such as receiving a purchase order.
    """

    movement_type = MovementType(movement_type)
    adjust_mode = AdjustMode(adjust_mode) if adjust_mode else None
    _validate(movement_type, qty, adjust_mode, note)
    if require_active and not product.active:
        raise ProductInactive(f"Product {product.product_id} is disabled", field="product_id")

    qty_base = qty * catalog.unit_multiplier(db, product, unit_id)
    delta = signed_delta(movement_type, qty_base, adjust_mode)
    if ref_type is None:
        ref_type = RefType.RETURN if movement_type is MovementType.RETURN else RefType.MANUAL

    movement = StockMovement(
        store_id=ctx.store_id,
        product_id=product.product_id,
        unit_id=unit_id,
        movement_type=movement_type,
        qty=qty,
        qty_base=qty_base,
        qty_delta=delta,
        adjust_mode=adjust_mode if movement_type is MovementType.ADJUST else None,
        ref_type=ref_type,
        ref_id=ref_id,
        note=note or None,
        created_by=ctx.user_id,
    )
    db.add(movement)
    _apply_delta(db, ctx.store_id, product.product_id, delta)
    db.flush()

    audit.record_event(
        db,
        ctx,
        "stock.movement.create",
        "stock_movement",
        movement.id,
        movement_type=movement_type.value,
        product_id=product.product_id,
        qty=qty,
        unit_id=unit_id,
        adjust_mode=adjust_mode.value if adjust_mode else None,
        ref_type=ref_type.value,
        ref_id=ref_id,
    )
    return movement


def apply_movement(
    db: Session,
    ctx: RequestContext,
    product_id: str,
    movement_type: MovementType | str,
    qty: int,
    unit_id: str,
    adjust_mode: AdjustMode | str | None = None,
    note: Optional[str] = None,
) -> StockMovement:
    """Record a manual stock movement and commit it together with the balance."""

    movement_type = MovementType(movement_type)
    adjust_mode = AdjustMode(adjust_mode) if adjust_mode else None
    _validate(movement_type, qty, adjust_mode, note)

    try:
        product = catalog.get_product(db, ctx.store_id, product_id)
        movement = post_movement(db, ctx, product, movement_type, qty, unit_id, adjust_mode, note)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(movement)
    logger.info(
        "Stock %s %s for %s in store %s by %s",
        movement.movement_type.value,
        movement.qty_delta,
        movement.product_id,
        movement.store_id,
        movement.created_by,
    )
    return movement


def get_balance(db: Session, store_id: str, product_id: str) -> Balance:
    row = db.exec(
        select(StockBalance.on_hand, StockBalance.reserved).where(
            StockBalance.store_id == store_id, StockBalance.product_id == product_id
        )
    ).first()
    if not row:
        return Balance(store_id=store_id, product_id=product_id, on_hand=0, reserved=0)
    return Balance(store_id=store_id, product_id=product_id, on_hand=row.on_hand, reserved=row.reserved)


def list_movements(
    db: Session,
    store_id: str,
    product_id: Optional[str] = None,
    movement_type: MovementType | str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[StockMovement]:
    query = select(StockMovement).where(StockMovement.store_id == store_id)
    if product_id:
        query = query.where(StockMovement.product_id == product_id)
    if movement_type:
        query = query.where(StockMovement.movement_type == MovementType(movement_type))
    query = query.order_by(col(StockMovement.created_at).desc(), col(StockMovement.id).desc())
    return list(db.exec(query.offset(offset).limit(limit)).all())


def list_low_stock(db: Session, store_id: str, threshold_base: Optional[int] = None) -> list[LowStockItem]:
    """Active products at or below their low-stock threshold, lowest on-hand first.

    The threshold is ``threshold_base`` when given, otherwise the product's own
    threshold, then the store's, then the configured default.
    """

    store = db.exec(select(Store).where(Store.store_id == store_id)).first()
    store_threshold = store.low_stock_threshold if store and store.low_stock_threshold is not None else None
    if store_threshold is None:
        store_threshold = get_settings().default_low_stock_threshold

    rows = db.exec(
        select(Product, StockBalance)
        .join(
            StockBalance,
            and_(StockBalance.store_id == Product.store_id, StockBalance.product_id == Product.product_id),
            isouter=True,
        )
        .where(Product.store_id == store_id, Product.active == True)  # noqa: E712
    ).all()

    items = []
    for product, balance in rows:
        if threshold_base is not None:
            threshold = threshold_base
        elif product.low_stock_threshold is not None:
            threshold = product.low_stock_threshold
        else:
            threshold = store_threshold
        on_hand = balance.on_hand if balance else 0
        if on_hand <= threshold:
            items.append(
                LowStockItem(
                    product_id=product.product_id,
                    sku=product.sku,
                    name=product.name,
                    on_hand=on_hand,
                    reserved=balance.reserved if balance else 0,
                    threshold=threshold,
                )
            )
    items.sort(key=lambda item: (item.on_hand, item.product_id))
    return items
