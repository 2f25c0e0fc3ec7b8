from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from retail_ledger.api.deps import get_context, get_db, pagination_params, require_permission
from retail_ledger.context import RequestContext
from retail_ledger.models import PurchaseOrderStatus
from retail_ledger.schemas.purchase import (
    PurchaseOrderCreate,
    PurchaseOrderItemRead,
    PurchaseOrderRead,
    PurchaseOrderStatusUpdate,
    PurchaseOrderUpdate,
)
from retail_ledger.services import purchasing

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])


def _to_read(view: purchasing.PurchaseOrderView) -> PurchaseOrderRead:
    return PurchaseOrderRead(
        **view.order.model_dump(),
        items=[PurchaseOrderItemRead.model_validate(item) for item in view.items],
        total_cost_purchase=view.total_cost_purchase,
        total_cost_base=view.total_cost_base,
    )


@router.post("", response_model=PurchaseOrderRead, status_code=status.HTTP_201_CREATED)
def create_purchase_order(
    payload: PurchaseOrderCreate,
    ctx: RequestContext = Depends(require_permission("inventory.create")),
    db: Session = Depends(get_db),
) -> PurchaseOrderRead:
    return _to_read(purchasing.create_purchase_order(db, ctx, payload))


@router.get("", response_model=list[PurchaseOrderRead])
def list_purchase_orders(
    status: Optional[PurchaseOrderStatus] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> list[PurchaseOrderRead]:
    limit, offset = pagination
    views = purchasing.list_purchase_orders(db, ctx.store_id, status=status, limit=limit, offset=offset)
    return [_to_read(view) for view in views]


@router.get("/{po_id}", response_model=PurchaseOrderRead)
def get_purchase_order(
    po_id: int,
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> PurchaseOrderRead:
    return _to_read(purchasing.get_purchase_order(db, ctx.store_id, po_id))


@router.patch("/{po_id}", response_model=PurchaseOrderRead)
def update_purchase_order(
    po_id: int,
    payload: PurchaseOrderUpdate,
    ctx: RequestContext = Depends(require_permission("inventory.create")),
    db: Session = Depends(get_db),
) -> PurchaseOrderRead:
    return _to_read(purchasing.update_purchase_order(db, ctx, po_id, payload))


@router.patch("/{po_id}/status", response_model=PurchaseOrderRead)
def update_status(
    po_id: int,
    payload: PurchaseOrderStatusUpdate,
    ctx: RequestContext = Depends(require_permission("inventory.create")),
    db: Session = Depends(get_db),
) -> PurchaseOrderRead:
    return _to_read(purchasing.update_purchase_order_status(db, ctx, po_id, payload))
