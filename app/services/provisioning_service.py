"""
Account Provisioning Service

Creates an account plus its role-specific profile as one logical unit:

    Validating -> CreatingAccount -> CreatingProfile -> Success
    Validating -> CreatingAccount -> CreatingProfile -> RollingBackAccount -> Failed
    Validating -> Rejected

MongoDB is used without a multi-document transaction. If any step after
the account insert fails, the account, any profile written for it and
any files stored for it are deleted before the error is reported. A
crash between the account insert and that delete can still leave an
orphaned account; there is no recovery job for that case.
"""

import asyncio
import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

import structlog
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.auth import IssuedTokens, TokenService, hash_password
from app.core.errors import (
    DuplicateAccount, ProfileValidationFailed, ProvisioningError,
    RequestRejected, StorageUnavailable, UploadRejected,
)
from app.schemas.schemas import (
    AccountRole, AuthProvider, CandidateForm, CompanyForm, NextStep,
)
from app.services.file_storage import FileStorageService, IncomingFile, MULTI_FILE_PURPOSES
from app.services.identity_service import IdentityVerifier
from app.services.mongo_service import AccountStore, CandidateProfileStore, CompanyStore
from app.services.profile_builder import (
    build_candidate_profile, build_company_profile, has_company_details,
)

logger = structlog.get_logger()

# Upload fields each role may send
ROLE_UPLOAD_PURPOSES = {
    AccountRole.candidate: {"resume", "profilePhoto", "coverLetter", "certificates"},
    AccountRole.employer: {"logo"},
    AccountRole.administrator: set(),
}

PRIVATE_ACCOUNT_FIELDS = (
    "password_hash", "verification_token", "refresh_token", "federated_subject",
)


class ProvisioningState(str, Enum):
    validating = "Validating"
    creating_account = "CreatingAccount"
    creating_profile = "CreatingProfile"
    rolling_back_account = "RollingBackAccount"
    success = "Success"
    failed = "Failed"
    rejected = "Rejected"


# ============================================================
# CREDENTIALS
# Picked before any side effect happens.
# ============================================================

@dataclass
class LocalCredential:
    password_hash: str


@dataclass
class FederatedCredential:
    provider: str
    subject: str


Credential = Union[LocalCredential, FederatedCredential]


@dataclass
class ProvisionRequest:
    email: str
    role: AccountRole
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    assertion: Optional[str] = None
    candidate: Optional[CandidateForm] = None
    company: Optional[CompanyForm] = None
    files: List[IncomingFile] = field(default_factory=list)


@dataclass
class ProvisionResult:
    account: dict
    profile: Optional[dict]
    profile_type: Optional[str]
    tokens: IssuedTokens
    registration_complete: bool
    next_step: NextStep


def public_account(doc: dict) -> dict:
    """Account projection safe to return to the caller."""
    return {key: value for key, value in doc.items() if key not in PRIVATE_ACCOUNT_FIELDS}


class ProvisioningAttempt:
    """Tracks and logs the state of one registration attempt."""

    def __init__(self, email: str, role: str):
        self.state = ProvisioningState.validating
        self.log = logger.bind(email=email, role=role)
        self.log.info("Provisioning state", state=self.state.value)

    def move(self, state: ProvisioningState, **kw) -> None:
        self.state = state
        log_method = self.log.warning if state in (
            ProvisioningState.rolling_back_account,
            ProvisioningState.failed,
            ProvisioningState.rejected,
        ) else self.log.info
        log_method("Provisioning state", state=state.value, **kw)


class AccountProvisioningWorkflow:
    """
    Orchestrates account + profile creation.

    Collaborators are injected so tests can swap any of them.
    """

    def __init__(
        self,
        accounts: AccountStore = None,
        candidates: CandidateProfileStore = None,
        companies: CompanyStore = None,
        files: FileStorageService = None,
        tokens: TokenService = None,
        identity: IdentityVerifier = None,
    ):
        self.accounts = accounts or AccountStore()
        self.candidates = candidates or CandidateProfileStore()
        self.companies = companies or CompanyStore()
        self.files = files or FileStorageService()
        self.tokens = tokens or TokenService()
        self.identity = identity or IdentityVerifier()

    def _profile_store(self, role: AccountRole):
        if role == AccountRole.candidate:
            return self.candidates
        if role == AccountRole.employer:
            return self.companies
        return None

    # --------------------------------------------------------
    # Validating
    # --------------------------------------------------------

    async def _resolve_credential(self, request: ProvisionRequest) -> Credential:
        if request.assertion:
            identity = self.identity.verify(request.assertion)
            request.email = identity.email
            request.first_name = request.first_name or identity.given_name
            request.last_name = request.last_name or identity.family_name
            return FederatedCredential(provider=identity.provider, subject=identity.subject)

        if not request.password:
            raise RequestRejected("password: Password is required")
        # bcrypt is deliberately slow; keep it off the event loop
        password_hash = await asyncio.to_thread(hash_password, request.password)
        return LocalCredential(password_hash=password_hash)

    def _check_files(self, request: ProvisionRequest) -> None:
        allowed = ROLE_UPLOAD_PURPOSES[request.role]
        for incoming in request.files:
            if incoming.purpose not in allowed:
                raise UploadRejected(
                    f"{incoming.purpose}: not accepted for {request.role.value} registration"
                )
        self.files.check_all(request.files)

    def _check_names(self, request: ProvisionRequest) -> None:
        messages = []
        if not request.first_name:
            messages.append("firstName: First name is required")
        if not request.last_name:
            messages.append("lastName: Last name is required")
        if messages:
            raise RequestRejected(messages)

    # --------------------------------------------------------
    # Main flow
    # --------------------------------------------------------

    async def provision(self, request: ProvisionRequest) -> ProvisionResult:
        request.email = request.email.strip().lower()
        attempt = ProvisioningAttempt(request.email, request.role.value)

        try:
            credential = await self._resolve_credential(request)
            attempt.log = attempt.log.bind(email=request.email)
            self._check_names(request)
            self._check_files(request)
            existing = await asyncio.to_thread(self.accounts.find_by_email, request.email)
        except ProvisioningError as e:
            attempt.move(ProvisioningState.rejected, category=e.category)
            raise
        except PyMongoError as e:
            attempt.move(ProvisioningState.rejected, error=str(e))
            raise StorageUnavailable()

        if existing:
            attempt.move(ProvisioningState.rejected, category=DuplicateAccount.category)
            raise DuplicateAccount(request.email)

        attempt.move(ProvisioningState.creating_account)
        account_id, doc = await self._create_account(request, credential, attempt)

        # From here on the account exists: any failure must remove it
        stored: Dict[str, object] = {}
        try:
            account = await asyncio.to_thread(self.accounts.get_by_id, account_id)
            if account is None:
                account = {**doc, "_id": account_id}

            issued = self.tokens.issue(account["_id"], account["email"], account["role"])

            attempt.move(ProvisioningState.creating_profile)
            profile = await self._create_profile(request, account, issued, stored)
        except Exception as e:
            await self._roll_back(account_id, request.role, stored, attempt)
            if isinstance(e, ProvisioningError):
                attempt.move(ProvisioningState.failed, category=e.category)
                raise
            if isinstance(e, (PyMongoError, OSError)):
                attempt.move(ProvisioningState.failed, category=StorageUnavailable.category, error=str(e))
                raise StorageUnavailable() from e
            attempt.move(ProvisioningState.failed, error_type=type(e).__name__, error=str(e))
            raise

        profile_type = request.role.value if profile is not None else None
        next_step = NextStep.dashboard
        if request.role == AccountRole.employer and not has_company_details(request.company):
            next_step = NextStep.complete_company_profile

        attempt.move(ProvisioningState.success, account_id=account["_id"])
        return ProvisionResult(
            account=public_account(account),
            profile=profile,
            profile_type=profile_type,
            tokens=issued,
            registration_complete=profile is not None,
            next_step=next_step,
        )

    async def _create_account(
        self, request: ProvisionRequest, credential: Credential, attempt: ProvisioningAttempt
    ) -> Tuple[str, dict]:
        doc = {
            "email": request.email,
            "first_name": request.first_name,
            "last_name": request.last_name,
            "phone": request.phone,
            "role": request.role.value,
            "password_hash": None,
            "auth_provider": AuthProvider.local.value,
            "is_email_verified": False,
            "verification_token": None,
            "refresh_token": None,
        }
        if isinstance(credential, FederatedCredential):
            doc.update(
                auth_provider=AuthProvider.federated.value,
                federated_provider=credential.provider,
                federated_subject=credential.subject,
                is_email_verified=True,
            )
        else:
            doc.update(
                password_hash=credential.password_hash,
                verification_token=secrets.token_hex(32),
            )

        try:
            account_id = await asyncio.to_thread(self.accounts.insert, doc)
        except DuplicateKeyError:
            # Lost the race against a concurrent registration
            attempt.move(ProvisioningState.failed, category=DuplicateAccount.category)
            raise DuplicateAccount(request.email)
        except PyMongoError as e:
            attempt.move(ProvisioningState.failed, error=str(e))
            raise StorageUnavailable()

        return account_id, doc

    async def _store_uploads(self, request: ProvisionRequest, stored: Dict[str, object]) -> None:
        for incoming in request.files:
            try:
                reference = await asyncio.to_thread(
                    self.files.store, incoming.purpose, incoming.content, incoming.filename
                )
            except OSError as e:
                raise StorageUnavailable(f"{incoming.purpose}: could not be saved ({e.strerror})")
            if incoming.purpose in MULTI_FILE_PURPOSES:
                stored.setdefault(incoming.purpose, []).append(reference)
            else:
                stored[incoming.purpose] = reference

    async def _create_profile(
        self,
        request: ProvisionRequest,
        account: dict,
        issued: IssuedTokens,
        stored: Dict[str, object],
    ) -> Optional[dict]:
        store = self._profile_store(request.role)

        def save_refresh():
            return asyncio.to_thread(
                self.accounts.set_refresh_token, account["_id"], issued.refresh_token
            )

        if store is None:
            try:
                await save_refresh()
            except PyMongoError:
                raise StorageUnavailable()
            return None

        await self._store_uploads(request, stored)
        if request.role == AccountRole.candidate:
            profile_doc = build_candidate_profile(account, request.candidate, stored)
        else:
            profile_doc = build_company_profile(account, request.company, stored)

        profile_result, refresh_result = await asyncio.gather(
            asyncio.to_thread(store.insert, profile_doc),
            save_refresh(),
            return_exceptions=True,
        )

        if isinstance(profile_result, BaseException):
            if isinstance(profile_result, (PyMongoError, OSError)):
                raise StorageUnavailable()
            if isinstance(profile_result, ProvisioningError):
                raise profile_result
            raise ProfileValidationFailed(str(profile_result))

        if isinstance(refresh_result, BaseException):
            # The profile is removed with the account during roll back
            raise StorageUnavailable()

        return await asyncio.to_thread(store.get_by_id, profile_result)

    # --------------------------------------------------------
    # RollingBackAccount
    # --------------------------------------------------------

    async def _roll_back(
        self,
        account_id: str,
        role: AccountRole,
        stored: Dict[str, object],
        attempt: ProvisioningAttempt,
    ) -> None:
        attempt.move(ProvisioningState.rolling_back_account, account_id=account_id)
        store = self._profile_store(role)
        if store is not None:
            try:
                await asyncio.to_thread(store.delete_by_account, account_id)
            except PyMongoError as e:
                attempt.log.error("Rollback failed, profile orphaned", account_id=account_id, error=str(e))

        try:
            await asyncio.to_thread(self.accounts.delete_by_id, account_id)
        except PyMongoError as e:
            attempt.log.error("Rollback failed, account orphaned", account_id=account_id, error=str(e))

        for reference in _flatten(stored.values()):
            try:
                await asyncio.to_thread(self.files.delete, reference)
            except OSError as e:
                attempt.log.error("Upload cleanup failed", reference=reference, error=str(e))


def _flatten(values) -> List[str]:
    flat = []
    for value in values:
        if isinstance(value, list):
            flat.extend(value)
        elif value:
            flat.append(value)
    return flat


def get_provisioning_workflow() -> AccountProvisioningWorkflow:
    return AccountProvisioningWorkflow()
