from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from retail_ledger.api.deps import ensure_permission, get_context, get_db, pagination_params
from retail_ledger.context import RequestContext
from retail_ledger.models import MovementType, StockMovement
from retail_ledger.schemas.inventory import (
    LowStockItemRead,
    StockBalanceRead,
    StockMovementCreate,
    StockMovementRead,
    StockMovementResult,
)
from retail_ledger.services import catalog, ledger

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _balance_read(balance: ledger.Balance) -> StockBalanceRead:
    return StockBalanceRead(
        store_id=balance.store_id,
        product_id=balance.product_id,
        on_hand=balance.on_hand,
        reserved=balance.reserved,
        available=balance.available,
    )


@router.post("/movements", response_model=StockMovementResult, status_code=status.HTTP_201_CREATED)
def create_movement(
    payload: StockMovementCreate,
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> StockMovementResult:
    ensure_permission(ctx, ledger.required_permission(payload.movement_type))
    movement = ledger.apply_movement(
        db,
        ctx,
        product_id=payload.product_id,
        movement_type=payload.movement_type,
        qty=payload.qty,
        unit_id=payload.unit_id,
        adjust_mode=payload.adjust_mode,
        note=payload.note,
    )
    balance = ledger.get_balance(db, ctx.store_id, movement.product_id)
    return StockMovementResult(
        movement=StockMovementRead.model_validate(movement),
        balance=_balance_read(balance),
    )


@router.get("/movements", response_model=list[StockMovementRead])
def list_movements(
    product_id: Optional[str] = None,
    movement_type: Optional[MovementType] = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> list[StockMovement]:
    limit, offset = pagination
    return ledger.list_movements(
        db, ctx.store_id, product_id=product_id, movement_type=movement_type, limit=limit, offset=offset
    )


@router.get("/balances/{product_id}", response_model=StockBalanceRead)
def get_balance(
    product_id: str,
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> StockBalanceRead:
    catalog.get_product(db, ctx.store_id, product_id)
    return _balance_read(ledger.get_balance(db, ctx.store_id, product_id))


@router.get("/low-stock", response_model=list[LowStockItemRead])
def low_stock(
    threshold: Optional[int] = Query(default=None, ge=0),
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> list[LowStockItemRead]:
    return [
        LowStockItemRead.model_validate(item)
        for item in ledger.list_low_stock(db, ctx.store_id, threshold_base=threshold)
    ]
