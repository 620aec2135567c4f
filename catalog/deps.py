# catalog/deps.py
from typing import Optional
from fastapi import Header, HTTPException, Request
from .query import QueryOrchestrator
from .services import Principal
from .sync import IndexSyncer

def get_syncer(request: Request) -> IndexSyncer:
    return request.app.state.syncer

def get_orchestrator(request: Request) -> QueryOrchestrator:
    return request.app.state.orchestrator

def get_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[Principal]:
    """Principal forwarded by the upstream auth layer, if any."""
    if not x_user_id:
        return None
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")
    return Principal(id=user_id, role=(x_user_role or "user").strip().lower())

def require_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Principal:
    principal = get_principal(x_user_id, x_user_role)
    if principal is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return principal
