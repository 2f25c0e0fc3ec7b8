from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from retail_ledger.api.deps import get_db, pagination_params, require_permission
from retail_ledger.context import RequestContext
from retail_ledger.models import Store
from retail_ledger.schemas.store import StoreCreate, StoreRead, StoreUpdate
from retail_ledger.services import audit, catalog

router = APIRouter(prefix="/stores", tags=["stores"])


def _ensure_own_store(ctx: RequestContext, store_id: str) -> None:
    if ctx.store_id != store_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail=f"Store {store_id} is outside the request context"
        )


@router.post("", response_model=StoreRead, status_code=status.HTTP_201_CREATED)
def create_store(
    payload: StoreCreate,
    ctx: RequestContext = Depends(require_permission("settings.update")),
    db: Session = Depends(get_db),
) -> Store:
    _ensure_own_store(ctx, payload.store_id)
    store = Store(**payload.model_dump())
    db.add(store)
    try:
        db.flush()
        audit.record_event(db, ctx, "store.create", "store", store.store_id, name=store.name)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail="Store already exists") from exc
    db.refresh(store)
    return store


@router.get("", response_model=list[StoreRead])
def list_stores(
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[Store]:
    limit, offset = pagination
    query = select(Store).order_by(Store.store_id).offset(offset).limit(limit)
    return list(db.exec(query).all())


@router.get("/{store_id}", response_model=StoreRead)
def get_store(store_id: str, db: Session = Depends(get_db)) -> Store:
    return catalog.get_store(db, store_id)


@router.patch("/{store_id}", response_model=StoreRead)
def update_store(
    store_id: str,
    payload: StoreUpdate,
    ctx: RequestContext = Depends(require_permission("settings.update")),
    db: Session = Depends(get_db),
) -> Store:
    _ensure_own_store(ctx, store_id)
    store = catalog.get_store(db, store_id)
    update_data = payload.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(store, key, value)
    db.add(store)
    audit.record_event(db, ctx, "store.settings.update", "store", store_id, fields=sorted(update_data))
    db.commit()
    db.refresh(store)
    return store
