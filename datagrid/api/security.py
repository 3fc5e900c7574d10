from fastapi import HTTPException, Request

from datagrid.core.config import settings
from datagrid.models.errors import AuthorizationError
from datagrid.services.csrf import token_store

async def require_csrf_token(request: Request) -> None:
    """
    Dependency for write/import routes: header token must match the session's token.
    """
    if not settings.CSRF_ENABLED:
        return
    try:
        token_store.verify(
            request.cookies.get(settings.SESSION_COOKIE_NAME),
            request.headers.get(settings.CSRF_HEADER_NAME),
        )
    except AuthorizationError as e:
        raise HTTPException(status_code=403, detail=str(e))
