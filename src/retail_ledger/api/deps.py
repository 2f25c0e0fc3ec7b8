from typing import Generator

from fastapi import Depends, Header, HTTPException, status
from sqlmodel import Session

from retail_ledger.config import get_settings
from retail_ledger.context import RequestContext
from retail_ledger.database import session_scope


def get_db() -> Generator[Session, None, None]:
    with session_scope() as session:
        yield session


def pagination_params(limit: int = 50, offset: int = 0) -> tuple[int, int]:
    settings = get_settings()
    if limit > settings.max_page_size:
        limit = settings.max_page_size
    if limit < 1:
        limit = settings.default_page_size
    return limit, max(offset, 0)


def get_context(
    x_store_id: str = Header(..., min_length=1),
    x_user_id: str = Header(..., min_length=1),
    x_permissions: str = Header(default=""),
) -> RequestContext:
    permissions = frozenset(item.strip() for item in x_permissions.split(",") if item.strip())
    return RequestContext(store_id=x_store_id, user_id=x_user_id, permissions=permissions)


def ensure_permission(ctx: RequestContext, permission: str) -> None:
    if get_settings().enforce_permissions and not ctx.allows(permission):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Missing permission {permission}")


def require_permission(permission: str):
    def dependency(ctx: RequestContext = Depends(get_context)) -> RequestContext:
        ensure_permission(ctx, permission)
        return ctx

    return dependency
