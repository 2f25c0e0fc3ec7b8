"""Supplier purchase orders from creation to receipt or cancellation.

Receiving is the only place purchase quantities reach the stock ledger. The
status change is a compare-and-swap on ``(id, status, version)`` and the IN
movements are staged in the same transaction, so an order is either received
with all of its postings or not received at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import update
from sqlmodel import Session, col, select

from retail_ledger.context import RequestContext
from retail_ledger.errors import (
    ConcurrencyConflict,
    InvalidReceipt,
    InvalidTransition,
    NotFound,
    ValidationFailed,
)
from retail_ledger.models import (
    Currency,
    MovementType,
    Product,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    RefType,
    utcnow,
)
from retail_ledger.schemas.purchase import (
    PurchaseOrderCreate,
    PurchaseOrderStatusUpdate,
    PurchaseOrderUpdate,
    ReceivedItemPayload,
)
from retail_ledger.services import audit, catalog, ledger, sequences
from retail_ledger.services.totals import divide_half_up, round_half_up

logger = logging.getLogger(__name__)

TRANSITIONS: dict[PurchaseOrderStatus, frozenset[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.ORDERED: frozenset(
        {PurchaseOrderStatus.SHIPPED, PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED}
    ),
    PurchaseOrderStatus.SHIPPED: frozenset({PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.RECEIVED: frozenset(),
    PurchaseOrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED})
EDITABLE_AFTER_SHIPPING = frozenset({"note", "expected_at", "tracking_info"})


@dataclass
class PurchaseOrderView:
    order: PurchaseOrder
    items: list[PurchaseOrderItem] = field(default_factory=list)

    @property
    def total_cost_purchase(self) -> int:
        return sum(item.qty_ordered * item.unit_cost_purchase for item in self.items)

    @property
    def total_cost_base(self) -> int:
        return sum(item.qty_ordered * item.unit_cost_base for item in self.items)


def can_transition(current: PurchaseOrderStatus, target: PurchaseOrderStatus) -> bool:
    return PurchaseOrderStatus(target) in TRANSITIONS[PurchaseOrderStatus(current)]


def _get_order(db: Session, store_id: str, po_id: int) -> PurchaseOrder:
    order = db.exec(
        select(PurchaseOrder).where(PurchaseOrder.id == po_id, PurchaseOrder.store_id == store_id)
    ).first()
    if not order:
        raise NotFound(f"Purchase order {po_id} not found", field="po_id")
    return order


def _load_items(db: Session, po_id: int) -> list[PurchaseOrderItem]:
    query = (
        select(PurchaseOrderItem)
        .where(PurchaseOrderItem.purchase_order_id == po_id)
        .order_by(col(PurchaseOrderItem.id))
    )
    return list(db.exec(query).all())


def _received_quantities(
    items: list[PurchaseOrderItem], received_items: Optional[Iterable[ReceivedItemPayload]]
) -> dict[int, int]:
    """Map item id to received quantity; unlisted items arrive in full."""

    by_id = {item.id: item for item in items}
    quantities = {item.id: item.qty_ordered for item in items}
    for entry in received_items or ():
        item = by_id.get(entry.item_id)
        if item is None:
            raise InvalidReceipt(
                f"Item {entry.item_id} is not part of this purchase order", field="received_items"
            )
        qty = max(entry.qty_received, 0)
        if qty > item.qty_ordered:
            raise InvalidReceipt(
                f"Item {entry.item_id} received {qty} but only {item.qty_ordered} were ordered",
                field="received_items",
            )
        quantities[item.id] = qty
    return quantities


def weighted_cost(previous_on_hand: int, previous_cost: int, qty_received: int, unit_cost: int) -> int:
    """Average unit cost after receiving ``qty_received`` at ``unit_cost``.

    With nothing on hand before the receipt the new cost replaces the old one.
    """

    if previous_on_hand <= 0:
        return unit_cost
    return divide_half_up(
        previous_on_hand * previous_cost + qty_received * unit_cost,
        previous_on_hand + qty_received,
    )


def _update_cost(
    db: Session,
    ctx: RequestContext,
    order: PurchaseOrder,
    product: Product,
    item: PurchaseOrderItem,
    previous_on_hand: int,
) -> None:
    previous_cost = product.cost_base
    next_cost = weighted_cost(previous_on_hand, previous_cost, item.qty_received, item.unit_cost_base)
    if next_cost == previous_cost:
        return
    product.cost_base = next_cost
    db.add(product)
    audit.record_event(
        db,
        ctx,
        "product.cost.auto_from_po",
        "product",
        product.product_id,
        po_id=order.id,
        po_number=order.po_number,
        qty_received=item.qty_received,
        unit_cost_base=item.unit_cost_base,
        previous_on_hand=previous_on_hand,
        previous_cost_base=previous_cost,
        cost_base=next_cost,
    )


def _receive(
    db: Session,
    ctx: RequestContext,
    order: PurchaseOrder,
    items: list[PurchaseOrderItem],
    quantities: dict[int, int],
) -> int:
    posted = 0
    for item in items:
        item.qty_received = quantities[item.id]
        db.add(item)
        if item.qty_received <= 0:
            continue
        product = catalog.get_product(db, order.store_id, item.product_id)
        previous_on_hand = ledger.get_balance(db, order.store_id, item.product_id).on_hand
        ledger.post_movement(
            db,
            ctx,
            product,
            MovementType.IN,
            item.qty_received,
            product.base_unit_id,
            note=f"Received from {order.po_number}",
            ref_type=RefType.PURCHASE,
            ref_id=str(order.id),
            require_active=False,
        )
        _update_cost(db, ctx, order, product, item, previous_on_hand)
        posted += 1
    return posted


def create_purchase_order(db: Session, ctx: RequestContext, payload: PurchaseOrderCreate) -> PurchaseOrderView:
    try:
        store = catalog.get_store(db, ctx.store_id)
        for item in payload.items:
            catalog.get_product(db, ctx.store_id, item.product_id)

        if payload.purchase_currency == store.currency:
            exchange_rate = Decimal(1)
        else:
            exchange_rate = payload.exchange_rate

        now = utcnow()
        status = PurchaseOrderStatus.RECEIVED if payload.receive_immediately else PurchaseOrderStatus.ORDERED
        order = PurchaseOrder(
            store_id=ctx.store_id,
            po_number=sequences.next_po_number(db, ctx.store_id, now.year),
            supplier_name=payload.supplier_name,
            supplier_contact=payload.supplier_contact,
            purchase_currency=payload.purchase_currency,
            exchange_rate=exchange_rate,
            shipping_cost=payload.shipping_cost,
            other_cost=payload.other_cost,
            other_cost_note=payload.other_cost_note,
            note=payload.note,
            expected_at=payload.expected_at,
            status=status,
            ordered_at=now,
            received_at=now if payload.receive_immediately else None,
            created_by=ctx.user_id,
            created_at=now,
            updated_at=now,
        )
        db.add(order)
        db.flush()

        items = []
        for line in payload.items:
            item = PurchaseOrderItem(
                purchase_order_id=order.id,
                product_id=line.product_id,
                qty_ordered=line.qty_ordered,
                unit_cost_purchase=line.unit_cost_purchase,
                unit_cost_base=round_half_up(Decimal(line.unit_cost_purchase) * exchange_rate),
            )
            db.add(item)
            items.append(item)
        db.flush()

        posted = 0
        if payload.receive_immediately:
            posted = _receive(db, ctx, order, items, {item.id: item.qty_ordered for item in items})

        audit.record_event(
            db,
            ctx,
            "po.create",
            "purchase_order",
            order.id,
            po_number=order.po_number,
            status=status.value,
            receive_immediately=payload.receive_immediately,
            item_count=len(items),
            movements_posted=posted,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Created purchase order %s (%s) in store %s", order.po_number, status.value, ctx.store_id)
    return get_purchase_order(db, ctx.store_id, order.id)


def update_purchase_order_status(
    db: Session, ctx: RequestContext, po_id: int, payload: PurchaseOrderStatusUpdate
) -> PurchaseOrderView:
    target = PurchaseOrderStatus(payload.status)
    try:
        order = _get_order(db, ctx.store_id, po_id)
        current = PurchaseOrderStatus(order.status)

        if current == target and current in TERMINAL_STATUSES:
            logger.info("Purchase order %s is already %s, nothing to apply", order.po_number, current.value)
            return get_purchase_order(db, ctx.store_id, po_id)

        if not can_transition(current, target):
            raise InvalidTransition(
                f"Cannot change purchase order {order.po_number} from {current.value} to {target.value}",
                field="status",
            )

        items = _load_items(db, order.id)
        quantities = None
        if target is PurchaseOrderStatus.RECEIVED:
            quantities = _received_quantities(items, payload.received_items)

        now = utcnow()
        values = {
            "status": target,
            "version": order.version + 1,
            "updated_by": ctx.user_id,
            "updated_at": now,
        }
        if target is PurchaseOrderStatus.SHIPPED:
            values["shipped_at"] = now
            if payload.tracking_info:
                values["tracking_info"] = payload.tracking_info
        elif target is PurchaseOrderStatus.RECEIVED:
            values["received_at"] = now
        elif target is PurchaseOrderStatus.CANCELLED:
            values["cancelled_at"] = now

        swapped = db.exec(
            update(PurchaseOrder)
            .where(
                PurchaseOrder.id == order.id,
                PurchaseOrder.status == current,
                PurchaseOrder.version == order.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if not swapped.rowcount:
            raise ConcurrencyConflict(
                f"Purchase order {order.po_number} was changed by another request", field="status"
            )

        posted = 0
        if quantities is not None:
            posted = _receive(db, ctx, order, items, quantities)

        audit.record_event(
            db,
            ctx,
            "po.status.change",
            "purchase_order",
            order.id,
            po_number=order.po_number,
            previous_status=current.value,
            status=target.value,
            movements_posted=posted,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Purchase order %s moved %s -> %s, %s movements posted",
        order.po_number,
        current.value,
        target.value,
        posted,
    )
    return get_purchase_order(db, ctx.store_id, po_id)


def _next_exchange_rate(
    order: PurchaseOrder, store_currency: Currency, changes: dict[str, Any]
) -> Optional[Decimal]:
    """Rate after an edit, or ``None`` when currency and rate are untouched."""

    if "purchase_currency" not in changes and "exchange_rate" not in changes:
        return None
    currency = changes.get("purchase_currency", order.purchase_currency)
    if currency == store_currency:
        return Decimal(1)
    if "exchange_rate" in changes:
        return changes["exchange_rate"]
    if currency != order.purchase_currency:
        raise ValidationFailed(
            f"An exchange rate is required when switching to {Currency(currency).value}", field="exchange_rate"
        )
    return order.exchange_rate


def update_purchase_order(
    db: Session, ctx: RequestContext, po_id: int, payload: PurchaseOrderUpdate
) -> PurchaseOrderView:
    """Edit an order that has not been received or cancelled.

    An ORDERED order accepts every field and may have its items replaced. Once
    shipped, only the note, expected date and tracking info can change.
    """

    changes = payload.model_dump(exclude_unset=True, exclude={"items"})
    replace_items = "items" in payload.model_fields_set
    try:
        order = _get_order(db, ctx.store_id, po_id)
        current = PurchaseOrderStatus(order.status)
        if current in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Purchase order {order.po_number} is {current.value} and can no longer be edited", field="status"
            )

        edited = sorted(changes) + (["items"] if replace_items else [])
        restricted = [name for name in edited if name not in EDITABLE_AFTER_SHIPPING]
        if current is PurchaseOrderStatus.SHIPPED and restricted:
            raise ValidationFailed(
                f"Only note, expected_at and tracking_info can change once {order.po_number} has shipped",
                field=restricted[0],
            )
        if not edited:
            return get_purchase_order(db, ctx.store_id, po_id)

        store = catalog.get_store(db, ctx.store_id)
        if replace_items:
            for line in payload.items:
                catalog.get_product(db, ctx.store_id, line.product_id)

        exchange_rate = _next_exchange_rate(order, store.currency, changes)
        values = dict(changes)
        if exchange_rate is not None:
            values["purchase_currency"] = changes.get("purchase_currency", order.purchase_currency)
            values["exchange_rate"] = exchange_rate
        values.update(version=order.version + 1, updated_by=ctx.user_id, updated_at=utcnow())

        swapped = db.exec(
            update(PurchaseOrder)
            .where(
                PurchaseOrder.id == order.id,
                PurchaseOrder.status == current,
                PurchaseOrder.version == order.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if not swapped.rowcount:
            raise ConcurrencyConflict(
                f"Purchase order {order.po_number} was changed by another request", field="version"
            )

        rate = exchange_rate if exchange_rate is not None else order.exchange_rate
        if replace_items:
            for item in _load_items(db, order.id):
                db.delete(item)
            db.flush()
            for line in payload.items:
                db.add(
                    PurchaseOrderItem(
                        purchase_order_id=order.id,
                        product_id=line.product_id,
                        qty_ordered=line.qty_ordered,
                        unit_cost_purchase=line.unit_cost_purchase,
                        unit_cost_base=round_half_up(Decimal(line.unit_cost_purchase) * rate),
                    )
                )
        elif exchange_rate is not None:
            for item in _load_items(db, order.id):
                item.unit_cost_base = round_half_up(Decimal(item.unit_cost_purchase) * rate)
                db.add(item)

        audit.record_event(
            db,
            ctx,
            "po.update",
            "purchase_order",
            order.id,
            po_number=order.po_number,
            fields=edited,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Updated purchase order %s in store %s", order.po_number, ctx.store_id)
    return get_purchase_order(db, ctx.store_id, po_id)


def get_purchase_order(db: Session, store_id: str, po_id: int) -> PurchaseOrderView:
    order = _get_order(db, store_id, po_id)
    return PurchaseOrderView(order=order, items=_load_items(db, order.id))


def list_purchase_orders(
    db: Session,
    store_id: str,
    status: Optional[PurchaseOrderStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[PurchaseOrderView]:
    query = select(PurchaseOrder).where(PurchaseOrder.store_id == store_id)
    if status:
        query = query.where(PurchaseOrder.status == PurchaseOrderStatus(status))
    query = query.order_by(col(PurchaseOrder.created_at).desc(), col(PurchaseOrder.id).desc())
    orders = list(db.exec(query.offset(offset).limit(limit)).all())
    if not orders:
        return []

    items_by_order: dict[int, list[PurchaseOrderItem]] = {order.id: [] for order in orders}
    rows = db.exec(
        select(PurchaseOrderItem)
        .where(col(PurchaseOrderItem.purchase_order_id).in_(list(items_by_order)))
        .order_by(col(PurchaseOrderItem.id))
    ).all()
    for item in rows:
        items_by_order[item.purchase_order_id].append(item)
    return [PurchaseOrderView(order=order, items=items_by_order[order.id]) for order in orders]
