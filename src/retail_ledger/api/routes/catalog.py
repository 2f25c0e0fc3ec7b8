from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from retail_ledger.api.deps import get_context, get_db, pagination_params, require_permission
from retail_ledger.context import RequestContext
from retail_ledger.models import Product, ProductUnit
from retail_ledger.schemas.catalog import (
    BarcodeRead,
    ProductCreate,
    ProductRead,
    ProductUnitCreate,
    ProductUnitRead,
)
from retail_ledger.services import catalog, sequences

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.post("/products", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    ctx: RequestContext = Depends(require_permission("products.create")),
    db: Session = Depends(get_db),
) -> Product:
    return catalog.create_product(db, ctx, payload)


@router.get("/products", response_model=list[ProductRead])
def list_products(
    pagination: tuple[int, int] = Depends(pagination_params),
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> list[Product]:
    limit, offset = pagination
    return catalog.list_products(db, ctx.store_id, limit=limit, offset=offset)


@router.get("/products/{product_id}", response_model=ProductRead)
def get_product(
    product_id: str,
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> Product:
    return catalog.get_product(db, ctx.store_id, product_id)


@router.post(
    "/products/{product_id}/units",
    response_model=ProductUnitRead,
    status_code=status.HTTP_201_CREATED,
)
def add_product_unit(
    product_id: str,
    payload: ProductUnitCreate,
    ctx: RequestContext = Depends(require_permission("products.update")),
    db: Session = Depends(get_db),
) -> ProductUnit:
    return catalog.add_product_unit(db, ctx, product_id, payload)


@router.post("/barcodes", response_model=BarcodeRead, status_code=status.HTTP_201_CREATED)
def generate_barcode(
    ctx: RequestContext = Depends(require_permission("products.create")),
    db: Session = Depends(get_db),
) -> BarcodeRead:
    catalog.get_store(db, ctx.store_id)
    return BarcodeRead(barcode=sequences.allocate_internal_barcode(db, ctx.store_id))
