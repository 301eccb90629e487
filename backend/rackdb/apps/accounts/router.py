# backend/rackdb/apps/accounts/router.py

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, HTTPException, Request, status

from rackdb import security
from . import schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _client_ip(request: Request) -> str | None:
    try:
        return request.client.host if request.client else None
    except Exception:
        return None


@router.post(
    "/login",
    response_model=schemas.AdminToken,
    summary="Exchange admin credentials for a bearer token",
)
def login(payload: schemas.AdminLoginRequest, request: Request):
    """
    Admin login.

    The returned token must be sent as `Authorization: Bearer <token>` to
    delete materials, reset quantities or clear the logs.
    """
    if not security.authenticate_admin(payload.username, payload.password):
        logger.warning(
            "Admin login rejected",
            extra={"username": payload.username, "client_ip": _client_ip(request)},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Invalid credentials.", "field": None},
        )

    expires_in = security.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    token = security.create_access_token(
        data={"sub": security.ADMIN_USERNAME, "role": security.ADMIN_ROLE},
        expires_delta=timedelta(seconds=expires_in),
    )
    logger.info("Admin login succeeded", extra={"client_ip": _client_ip(request)})
    return schemas.AdminToken(access_token=token, expires_in=expires_in)
