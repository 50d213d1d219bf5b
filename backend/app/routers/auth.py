"""
QA Release Tracker - Authentication Router
Handles login, logout, session identity and the operator access diagnostic.
"""
import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from ..auth import (
    TokenService, get_token_service, get_current_identity, require_operator,
    set_session_cookie, clear_session_cookie,
)
from ..config import Settings, get_settings
from ..dependencies import get_access_gate
from ..errors import ValidationError
from ..models.domain import Identity
from ..services.access import AccessGate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    emp_code: Union[str, int] = Field("", alias="empCode")
    password: str = ""


class LoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    emp_name: str = Field(..., alias="empName")
    emp_code: str = Field(..., alias="empCode")


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/login", response_model=LoginResponse, response_model_by_alias=True)
async def login(
    request: LoginRequest,
    response: Response,
    gate: AccessGate = Depends(get_access_gate),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    """
    Authenticate with employee code + password.

    Issues a fresh token on every successful login and sets it as the
    session cookie.
    """
    emp_code = str(request.emp_code).strip()
    if not emp_code or not request.password.strip():
        raise ValidationError("EmpCode and Password are required.")

    result = gate.authenticate(emp_code, request.password)
    if not result.authorized:
        # Same HTTP status either way; the reason is only visible here
        logger.warning("Login rejected for emp_code=%s reason=%s", emp_code, result.reason.value)
        result.raise_for_denial()

    identity = result.identity
    issued = tokens.issue(identity)
    set_session_cookie(response, issued, settings)

    logger.info(f"Employee logged in: {identity.emp_code} ({identity.name})")
    return LoginResponse(token=issued.token, empName=identity.name, empCode=identity.emp_code)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response, settings: Settings = Depends(get_settings)):
    """Drop the session cookie. The token itself stays valid until it expires."""
    clear_session_cookie(response, settings)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=dict)
async def get_me(identity: Identity = Depends(get_current_identity)):
    """
    Get current authenticated employee.
    """
    return {"empCode": identity.emp_code, "empName": identity.name}


@router.get("/test-access", response_model=dict, dependencies=[Depends(require_operator)])
async def test_access(
    emp_code: Optional[str] = Query(None, alias="empCode"),
    gate: AccessGate = Depends(get_access_gate),
):
    """
    Raw entitlement code and directory snapshot for an employee.

    Operator-only (X-Operator-Key header).
    """
    if not emp_code or not emp_code.strip():
        raise ValidationError("empCode is required")
    return gate.access_snapshot(emp_code)
