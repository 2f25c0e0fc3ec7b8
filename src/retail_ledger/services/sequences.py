"""Per-store monotonic sequences.

Numbers come from a counter row that is bumped with a single ``UPDATE``. The
update takes the row's write lock until the surrounding transaction ends, so
two requests can never read the same value. Scanning existing codes for the
highest one seeds a counter the first time it is created; afterwards barcodes
already carried by a product are skipped.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from retail_ledger.errors import ConcurrencyConflict, ValidationFailed
from retail_ledger.models import Product, PurchaseOrder, SequenceCounter, utcnow

logger = logging.getLogger(__name__)

INTERNAL_BARCODE_PREFIX = "20"
INTERNAL_BARCODE_SCOPE = "barcode"
_INTERNAL_BARCODE_RE = re.compile(r"^20\d{11}$")
_MAX_BARCODE_SEQUENCE = 10**10 - 1


def next_in_sequence(
    db: Session,
    store_id: str,
    scope: str,
    seed: Optional[Callable[[], int]] = None,
) -> int:
    """Return the next value of ``scope`` for ``store_id`` inside ``db``'s transaction.

    The caller owns the transaction. Rolling it back releases the value, so
    committed numbers stay gap free. ``seed`` supplies the last value already
    in use when the counter does not exist yet.
    """

    bumped = db.exec(
        update(SequenceCounter)
        .where(SequenceCounter.store_id == store_id, SequenceCounter.scope == scope)
        .values(value=SequenceCounter.value + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if bumped.rowcount:
        return db.exec(
            select(SequenceCounter.value).where(
                SequenceCounter.store_id == store_id, SequenceCounter.scope == scope
            )
        ).one()

    start = seed() if seed else 0
    counter = SequenceCounter(store_id=store_id, scope=scope, value=start + 1)
    db.add(counter)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConcurrencyConflict(
            f"Sequence '{scope}' for store {store_id} was created by another request",
            field="scope",
        ) from exc
    logger.info("Created sequence %s for store %s starting at %s", scope, store_id, counter.value)
    return counter.value


def ean13_check_digit(first12: str) -> int:
    if len(first12) != 12 or not first12.isdigit():
        raise ValueError(f"EAN-13 body must be 12 digits, got {first12!r}")
    total = sum(int(digit) * (1 if index % 2 == 0 else 3) for index, digit in enumerate(first12))
    return (10 - total % 10) % 10


def is_valid_ean13(code: str) -> bool:
    if len(code) != 13 or not code.isdigit():
        return False
    return ean13_check_digit(code[:12]) == int(code[12])


def format_internal_barcode(sequence: int) -> str:
    if not 0 < sequence <= _MAX_BARCODE_SEQUENCE:
        raise ValidationFailed("Internal barcode range is exhausted", field="barcode")
    body = f"{INTERNAL_BARCODE_PREFIX}{sequence:010d}"
    return f"{body}{ean13_check_digit(body)}"


def _highest_internal_barcode(db: Session, store_id: str) -> int:
    codes = db.exec(
        select(Product.barcode).where(
            Product.store_id == store_id,
            Product.barcode.like(f"{INTERNAL_BARCODE_PREFIX}%"),
        )
    ).all()
    highest = 0
    for code in codes:
        if code and _INTERNAL_BARCODE_RE.match(code):
            highest = max(highest, int(code[2:12]))
    return highest


def _barcode_in_use(db: Session, store_id: str, barcode: str) -> bool:
    found = db.exec(
        select(Product.id).where(Product.store_id == store_id, Product.barcode == barcode)
    ).first()
    return found is not None


def next_internal_barcode(db: Session, store_id: str) -> str:
    """Draw the next internal barcode no product of the store carries yet.

    The counter row stays locked while taken values are skipped, so the loop
    cannot race another allocator.
    """

    while True:
        sequence = next_in_sequence(
            db,
            store_id,
            INTERNAL_BARCODE_SCOPE,
            seed=lambda: _highest_internal_barcode(db, store_id),
        )
        barcode = format_internal_barcode(sequence)
        if not _barcode_in_use(db, store_id, barcode):
            return barcode
        logger.info("Internal barcode %s already assigned in store %s, skipping", barcode, store_id)


def reserve_internal_barcode(db: Session, store_id: str, barcode: str) -> None:
    """Raise the barcode counter past a manually entered internal code."""

    if not _INTERNAL_BARCODE_RE.match(barcode or ""):
        return
    db.exec(
        update(SequenceCounter)
        .where(
            SequenceCounter.store_id == store_id,
            SequenceCounter.scope == INTERNAL_BARCODE_SCOPE,
            SequenceCounter.value < int(barcode[2:12]),
        )
        .values(value=int(barcode[2:12]), updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )


def allocate_internal_barcode(db: Session, store_id: str, attempts: int = 3) -> str:
    """Allocate and commit one barcode, retrying only on counter-creation races."""

    for attempt in range(1, attempts + 1):
        try:
            barcode = next_internal_barcode(db, store_id)
            db.commit()
        except ConcurrencyConflict:
            db.rollback()
            if attempt == attempts:
                raise
            logger.warning("Barcode allocation conflict for store %s, attempt %s", store_id, attempt)
            continue
        except Exception:
            db.rollback()
            raise
        return barcode
    raise ConcurrencyConflict(f"Could not allocate a barcode for store {store_id}")


def _highest_po_number(db: Session, store_id: str, prefix: str) -> int:
    numbers = db.exec(
        select(PurchaseOrder.po_number).where(
            PurchaseOrder.store_id == store_id,
            PurchaseOrder.po_number.like(f"{prefix}%"),
        )
    ).all()
    highest = 0
    for number in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def next_po_number(db: Session, store_id: str, year: Optional[int] = None) -> str:
    year = year or datetime.now().year
    prefix = f"PO-{year}-"
    sequence = next_in_sequence(
        db,
        store_id,
        f"po:{year}",
        seed=lambda: _highest_po_number(db, store_id, prefix),
    )
    return f"{prefix}{sequence:04d}"
