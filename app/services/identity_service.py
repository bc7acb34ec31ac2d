"""RS256 ID-token verification for federated sign-up."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog
from jose import ExpiredSignatureError, JWTError, jwt

from app.core.config import get_settings
from app.core.errors import RequestRejected

logger = structlog.get_logger()


@dataclass
class FederatedIdentity:
    """What a verified assertion tells us about the person."""

    provider: str
    subject: str
    email: str
    given_name: str
    family_name: str
    verified: bool = True


def split_full_name(name: str):
    """'Ada King Lovelace' -> ('Ada', 'King Lovelace'); one word repeats as family name."""
    given, _, family = (name or "").strip().partition(" ")
    family = family.strip() or given
    return given, family


class IdentityVerifier:
    """
    Verifies ID tokens signed by the configured identity provider.

    The public key is read once from settings.federated_public_key_path.
    """

    def __init__(
        self,
        public_key: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        settings = get_settings()
        self._public_key = public_key
        self._key_path = settings.federated_public_key_path
        self.issuer = issuer or settings.federated_issuer
        self.audience = audience or settings.federated_audience

    def load_public_key(self) -> Optional[str]:
        if self._public_key:
            return self._public_key

        if not self._key_path:
            logger.warning("Federated public key path not configured")
            return None

        key_path = Path(self._key_path)
        if not key_path.exists():
            logger.error("Federated public key file not found", path=str(key_path))
            return None

        self._public_key = key_path.read_text()
        logger.info("Loaded federated public key", path=str(key_path))
        return self._public_key

    def verify(self, assertion: str) -> FederatedIdentity:
        """
        Validate the assertion and extract the identity.

        Raises:
            RequestRejected: if the assertion is invalid, expired or incomplete
        """
        public_key = self.load_public_key()
        if not public_key:
            raise RequestRejected("Federated sign-in is not available")

        options = {"verify_aud": self.audience is not None}
        try:
            payload = jwt.decode(
                assertion,
                public_key,
                algorithms=["RS256"],
                audience=self.audience,
                issuer=self.issuer,
                options=options,
            )
        except ExpiredSignatureError:
            logger.warning("Federated assertion expired")
            raise RequestRejected("Sign-in assertion has expired. Please sign in again.")
        except JWTError as e:
            logger.warning("Federated assertion rejected", error=str(e))
            raise RequestRejected("Sign-in assertion is invalid")

        email = (payload.get("email") or "").strip().lower()
        subject = payload.get("sub")
        if not email or not subject:
            raise RequestRejected("Sign-in assertion is missing email or subject")

        if payload.get("email_verified") is False:
            raise RequestRejected("Email address is not verified with the identity provider")

        given = payload.get("given_name")
        family = payload.get("family_name")
        if not given:
            given, fallback_family = split_full_name(payload.get("name") or "")
            family = family or fallback_family
        if not given:
            raise RequestRejected("Sign-in assertion is missing the person's name")

        logger.debug("Federated assertion verified", sub=subject, email=email)
        return FederatedIdentity(
            provider=payload.get("iss", self.issuer),
            subject=str(subject),
            email=email,
            given_name=given,
            family_name=family or given,
        )


def get_identity_verifier() -> IdentityVerifier:
    return IdentityVerifier()
