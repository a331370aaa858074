import os
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException

from meditrack.core.env import load_env
from meditrack.schemas.models import Identity
load_env()

_ROLES = {"doctor", "patient", "system"}

def current_identity(
    x_user_id: str = Header(...),
    x_user_role: str = Header(...),
) -> Identity:
    """Session identity is resolved upstream; we only receive the stable id and role."""
    role = x_user_role.strip().lower()
    if role not in _ROLES:
        raise HTTPException(status_code=401, detail=f"Unknown role '{x_user_role}'.")
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user id.")
    return Identity(user_id=x_user_id.strip(), role=role)

def require_role(*roles: str) -> Callable[..., Identity]:
    def _check(who: Identity = Depends(current_identity)) -> Identity:
        if who.role not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"This action requires role: {', '.join(roles)}."
            )
        return who
    return _check

def verify_internal_service(x_internal_key: Optional[str] = Header(default=None)):
    # open when no secret is configured (local development)
    secret = os.getenv("INTERNAL_SERVICE_SECRET")
    if not secret:
        return

    if x_internal_key != secret:
        raise HTTPException(
            status_code=401,
            detail="Unauthorized service call."
        )
