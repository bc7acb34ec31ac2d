"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- Access/refresh token issuing and verification
- FastAPI dependencies for protected routes
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import get_settings
from app.core.errors import AuthenticationFailed, PermissionDenied
from app.services.mongo_service import AccountStore

settings = get_settings()

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

# Bearer token extractor
bearer_scheme = HTTPBearer(auto_error=False)

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify password against hash. Accounts without a hash never match."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str


class TokenService:
    """
    Issues and verifies the session token pair.

    Both tokens carry the account id in "sub". Access tokens also embed
    email and role so route guards need no database round-trip.
    """

    def __init__(
        self,
        secret_key: str = None,
        refresh_secret_key: str = None,
        algorithm: str = None,
        access_ttl: timedelta = None,
        refresh_ttl: timedelta = None,
    ):
        self.secret_key = secret_key or settings.jwt_secret_key
        self.refresh_secret_key = refresh_secret_key or settings.jwt_refresh_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.access_ttl = access_ttl or timedelta(minutes=settings.jwt_expire_minutes)
        self.refresh_ttl = refresh_ttl or timedelta(days=settings.jwt_refresh_expire_days)

    def _encode(self, claims: dict, secret: str, ttl: timedelta) -> str:
        now = datetime.utcnow()
        to_encode = {**claims, "iat": now, "exp": now + ttl}
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def issue(self, account_id: str, email: str = None, role: str = None) -> IssuedTokens:
        access_claims = {"sub": account_id, "type": ACCESS}
        if email is not None:
            access_claims["email"] = email
        if role is not None:
            access_claims["role"] = role

        return IssuedTokens(
            access_token=self._encode(access_claims, self.secret_key, self.access_ttl),
            refresh_token=self._encode(
                {"sub": account_id, "type": REFRESH, "jti": _token_id()},
                self.refresh_secret_key,
                self.refresh_ttl,
            ),
        )

    def _decode(self, token: str, secret: str, expected_type: str) -> dict:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise AuthenticationFailed("Token expired. Please sign in again.")
        except JWTError:
            raise AuthenticationFailed("Invalid token")

        if payload.get("type") != expected_type or not payload.get("sub"):
            raise AuthenticationFailed("Invalid token")
        return payload

    def verify_access(self, token: str) -> dict:
        return self._decode(token, self.secret_key, ACCESS)

    def verify_refresh(self, token: str) -> dict:
        return self._decode(token, self.refresh_secret_key, REFRESH)


def _token_id() -> str:
    return secrets.token_hex(8)


def get_token_service() -> TokenService:
    return TokenService()


async def get_current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> dict:
    """
    FastAPI dependency - Get current authenticated account.

    Usage:
        @router.get("/protected")
        async def route(account: dict = Depends(get_current_account)):
            return account
    """
    if credentials is None:
        raise AuthenticationFailed("Access token required")

    payload = tokens.verify_access(credentials.credentials)

    # Verify account still exists
    account = AccountStore().get_by_id(payload["sub"])
    if not account:
        raise AuthenticationFailed("Account not found")

    return account


async def get_optional_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[dict]:
    """Like get_current_account, but anonymous callers get None."""
    if credentials is None:
        return None
    return await get_current_account(credentials, tokens)


def require_role(*roles: str):
    """
    Dependency factory - allow only the given roles.

    Usage:
        @router.get("/admin", dependencies=[Depends(require_role("administrator"))])
    """
    async def checker(account: dict = Depends(get_current_account)) -> dict:
        if account["role"] not in roles:
            raise PermissionDenied(f"{' or '.join(roles)} access required")
        return account

    return checker
