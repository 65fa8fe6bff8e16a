"""
api/routes/v1/dealers.py -- Dealer login, logout, and identity endpoints.

Routes:
  POST /api/v1/dealers/login        -- password login; sets assertion cookie
  POST /api/v1/dealers/logout       -- clears cookie; 200
  GET  /api/v1/dealers/currentuser  -- current dealer (requires auth)

Security:
  SessionAuthority.authenticate() provides timing equalization -- use it,
  never inline get_by_name() + verify_password().
  Unknown name and wrong password return the same 401 body.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import CurrentDealerResponse, LoginRequest, LoginResponse, MessageResponse
from auth.dependencies import require_identity, try_get_identity
from auth.models import Identity
from auth.session import SessionAuthority
from auth.tokens import clear_auth_cookie, set_auth_cookie

# Auth policy:
# - POST /dealers/login:        public -- login endpoint must be unauthenticated
# - POST /dealers/logout:       public -- clearing a cookie needs no prior auth
# - GET  /dealers/currentuser:  requires auth (require_identity)
router = APIRouter()


@router.post("/dealers/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with dealer name and password; set the assertion cookie.

    InvalidCredentials raised by the authority is rendered by the app-level
    handler as 401 bad_credentials.
    """
    authority: SessionAuthority = request.app.state.session_authority
    assertion = authority.authenticate(body.name, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            dealer_id=assertion.dealer_id,
            name=assertion.name,
            access_token=assertion.value,
            expires_at=assertion.expires_at,
        ).model_dump(mode="json"),
    )
    set_auth_cookie(resp, assertion.value, assertion.expires_at)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/dealers/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the assertion cookie and end the session."""
    authority: SessionAuthority = request.app.state.session_authority
    authority.terminate(try_get_identity(request))
    resp = JSONResponse(content=MessageResponse(message="Logout successful").model_dump())
    clear_auth_cookie(resp)
    return resp


@router.get("/dealers/currentuser", response_model=CurrentDealerResponse)
def current_user(identity: Identity = Depends(require_identity)) -> CurrentDealerResponse:
    """Return the dealer behind the current assertion."""
    return CurrentDealerResponse(dealer_id=identity.dealer_id, name=identity.name)
