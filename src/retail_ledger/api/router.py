from fastapi import APIRouter

from retail_ledger.api.routes import catalog, health, inventory, orders, purchase_orders, store
from retail_ledger.schemas.common import ErrorRead

ERROR_RESPONSES = {
    400: {"model": ErrorRead},
    404: {"model": ErrorRead},
    409: {"model": ErrorRead},
}

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(store.router, responses=ERROR_RESPONSES)
api_router.include_router(catalog.router, responses=ERROR_RESPONSES)
api_router.include_router(inventory.router, responses=ERROR_RESPONSES)
api_router.include_router(purchase_orders.router, responses=ERROR_RESPONSES)
api_router.include_router(orders.router, responses=ERROR_RESPONSES)
