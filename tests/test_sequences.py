from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlmodel import Session

from retail_ledger.context import RequestContext
from retail_ledger.errors import ValidationFailed
from retail_ledger.models import Product, Store
from retail_ledger.schemas.catalog import ProductCreate
from retail_ledger.services import catalog, sequences


def test_check_digit_follows_ean13_weights() -> None:
    assert sequences.ean13_check_digit("400638133393") == 1
    assert sequences.ean13_check_digit("200000000001") == 5
    assert sequences.is_valid_ean13("4006381333931")
    assert not sequences.is_valid_ean13("4006381333932")
    assert not sequences.is_valid_ean13("40063813339")


def test_check_digit_rejects_malformed_bodies() -> None:
    with pytest.raises(ValueError):
        sequences.ean13_check_digit("12345")


def test_first_barcode_of_an_empty_store(db: Session, store: Store) -> None:
    barcode = sequences.allocate_internal_barcode(db, "S001")

    assert barcode == "2000000000015"
    assert sequences.is_valid_ean13(barcode)


def test_barcodes_are_sequential_per_store(db: Session, store: Store) -> None:
    db.add(Store(store_id="S002", name="Branch"))
    db.commit()

    first = sequences.allocate_internal_barcode(db, "S001")
    second = sequences.allocate_internal_barcode(db, "S001")
    other = sequences.allocate_internal_barcode(db, "S002")

    assert first[2:12] == "0000000001"
    assert second[2:12] == "0000000002"
    assert other == first


def test_counter_is_seeded_from_existing_barcodes(db: Session, store: Store) -> None:
    db.add(
        Product(
            store_id="S001",
            product_id="OLD",
            sku="OLD",
            name="Legacy item",
            base_unit_id="piece",
            barcode=sequences.format_internal_barcode(41),
        )
    )
    db.add(
        Product(
            store_id="S001",
            product_id="EXT",
            sku="EXT",
            name="Supplier item",
            base_unit_id="piece",
            barcode="8850999320014",
        )
    )
    db.commit()

    assert sequences.allocate_internal_barcode(db, "S001") == sequences.format_internal_barcode(42)


def test_exhausted_range_is_rejected() -> None:
    with pytest.raises(ValidationFailed):
        sequences.format_internal_barcode(10**10)


def test_concurrent_allocations_are_distinct(db_engine, db: Session, store: Store) -> None:
    def allocate(_: int) -> str:
        with Session(db_engine) as session:
            return sequences.allocate_internal_barcode(session, "S001", attempts=5)

    with ThreadPoolExecutor(max_workers=8) as pool:
        barcodes = list(pool.map(allocate, range(20)))

    assert len(set(barcodes)) == 20
    assert all(sequences.is_valid_ean13(code) for code in barcodes)
    assert sorted(int(code[2:12]) for code in barcodes) == list(range(1, 21))


def test_po_numbers_restart_each_year(db: Session, store: Store) -> None:
    assert sequences.next_po_number(db, "S001", 2025) == "PO-2025-0001"
    assert sequences.next_po_number(db, "S001", 2025) == "PO-2025-0002"
    assert sequences.next_po_number(db, "S001", 2026) == "PO-2026-0001"
    db.commit()


def test_allocation_skips_barcodes_already_on_products(db: Session, store: Store) -> None:
    first = sequences.allocate_internal_barcode(db, "S001")
    db.add(
        Product(
            store_id="S001",
            product_id="M",
            sku="M",
            name="Hand labelled",
            base_unit_id="piece",
            barcode=sequences.format_internal_barcode(2),
        )
    )
    db.commit()

    second = sequences.allocate_internal_barcode(db, "S001")

    assert first == sequences.format_internal_barcode(1)
    assert second == sequences.format_internal_barcode(3)


def test_manual_internal_barcode_moves_the_counter(db: Session, ctx: RequestContext, store: Store) -> None:
    sequences.allocate_internal_barcode(db, "S001")
    catalog.create_product(
        db,
        ctx,
        ProductCreate(
            product_id="M",
            sku="M",
            name="Hand labelled",
            base_unit_id="piece",
            barcode=sequences.format_internal_barcode(5),
        ),
    )

    assert sequences.allocate_internal_barcode(db, "S001") == sequences.format_internal_barcode(6)


def test_generated_product_barcodes_never_collide(db: Session, ctx: RequestContext, store: Store) -> None:
    sequences.allocate_internal_barcode(db, "S001")
    db.add(
        Product(
            store_id="S001",
            product_id="M",
            sku="M",
            name="Hand labelled",
            base_unit_id="piece",
            barcode=sequences.format_internal_barcode(2),
        )
    )
    db.commit()

    created = [
        catalog.create_product(
            db,
            ctx,
            ProductCreate(product_id=f"G{n}", sku=f"G{n}", name="Generated", base_unit_id="piece", generate_barcode=True),
        )
        for n in range(3)
    ]

    assert [product.barcode for product in created] == [
        sequences.format_internal_barcode(3),
        sequences.format_internal_barcode(4),
        sequences.format_internal_barcode(5),
    ]
