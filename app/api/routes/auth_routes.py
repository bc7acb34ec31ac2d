"""
Authentication Routes

POST /auth/login - Login and get a token pair
POST /auth/refresh - Exchange a refresh token for a new pair
POST /auth/federated - Register with an identity provider assertion
GET /auth/me - Get current account info
"""

from fastapi import APIRouter, Depends

from app.core.auth import (
    TokenService, get_current_account, get_token_service, verify_password,
)
from app.core.errors import AuthenticationFailed
from app.schemas.schemas import (
    AccountRole, AccountView, FederatedRegistration, LoginRequest,
    ProvisionResponse, RefreshRequest, SessionResponse, TokenPair,
)
from app.services.mongo_service import AccountStore
from app.services.provisioning_service import (
    ProvisionRequest, get_provisioning_workflow, public_account,
)
from app.api.routes.account_routes import to_provision_response

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _session(account: dict, tokens: TokenService) -> SessionResponse:
    """Issue a fresh pair and remember the refresh token on the account."""
    issued = tokens.issue(account["_id"], account["email"], account["role"])
    AccountStore().set_refresh_token(account["_id"], issued.refresh_token)
    return SessionResponse(
        account=AccountView(id=account["_id"], **public_account(account)),
        tokens=TokenPair(access_token=issued.access_token, refresh_token=issued.refresh_token),
    )


@router.post("/login", response_model=SessionResponse)
async def login(request: LoginRequest, tokens: TokenService = Depends(get_token_service)):
    """
    Login and receive an access/refresh token pair.

    Include the access token in requests: Authorization: Bearer <token>
    """
    account = AccountStore().find_by_email(request.email)
    if not account:
        raise AuthenticationFailed("Invalid email or password")

    if account.get("auth_provider") == "federated":
        raise AuthenticationFailed("This account signs in through its identity provider")

    if not verify_password(request.password, account.get("password_hash")):
        raise AuthenticationFailed("Invalid email or password")

    return _session(account, tokens)


@router.post("/refresh", response_model=SessionResponse)
async def refresh(request: RefreshRequest, tokens: TokenService = Depends(get_token_service)):
    """Rotate the token pair. Only the most recently issued refresh token is accepted."""
    payload = tokens.verify_refresh(request.refresh_token)

    account = AccountStore().get_by_id(payload["sub"])
    if not account:
        raise AuthenticationFailed("Account not found")

    if account.get("refresh_token") != request.refresh_token:
        raise AuthenticationFailed("Refresh token has been revoked. Please sign in again.")

    return _session(account, tokens)


@router.post("/federated", response_model=ProvisionResponse, status_code=201)
async def federated_register(
    request: FederatedRegistration,
    workflow=Depends(get_provisioning_workflow),
):
    """Register using an identity provider ID token instead of a password."""
    result = await workflow.provision(ProvisionRequest(
        email="",
        role=AccountRole(request.role),
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        assertion=request.assertion,
        candidate=request.candidate if request.role == "candidate" else None,
        company=request.company if request.role == "employer" else None,
    ))
    return to_provision_response(result, "Federated registration successful")


@router.get("/me", response_model=AccountView)
async def get_me(account: dict = Depends(get_current_account)):
    """Get current authenticated account's info."""
    return AccountView(id=account["_id"], **public_account(account))
