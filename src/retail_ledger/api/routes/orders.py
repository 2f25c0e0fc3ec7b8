from fastapi import APIRouter, Depends
from sqlmodel import Session

from retail_ledger.api.deps import get_context, get_db
from retail_ledger.context import RequestContext
from retail_ledger.schemas.totals import OrderTotalsRead, OrderTotalsRequest
from retail_ledger.services import catalog
from retail_ledger.services.totals import OrderTotals, compute_order_totals

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/totals", response_model=OrderTotalsRead)
def order_totals(
    payload: OrderTotalsRequest,
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> OrderTotals:
    store = catalog.get_store(db, ctx.store_id)
    return compute_order_totals(
        subtotal=payload.subtotal,
        discount=payload.discount,
        vat_enabled=store.vat_enabled if payload.vat_enabled is None else payload.vat_enabled,
        vat_rate=store.vat_rate if payload.vat_rate is None else payload.vat_rate,
        vat_mode=payload.vat_mode or store.vat_mode,
        shipping_fee_charged=payload.shipping_fee_charged,
    )
