"""
Account Routes

POST /accounts - Register a candidate, employer or administrator account
                 (JSON body, or multipart form with uploads)
GET /accounts/uploads/formats - Accepted upload types per field
"""

from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Request
from pydantic import TypeAdapter, ValidationError
from starlette.datastructures import UploadFile

from app.core.auth import get_optional_account
from app.core.errors import PermissionDenied, RequestRejected, format_validation_errors
from app.schemas.schemas import (
    AccountRole, AccountView, CandidateProfileView, EmployerProfileView,
    ErrorResponse, ProvisionResponse, RegistrationPayload, TokenPair,
)
from app.services.file_storage import IncomingFile, get_supported_formats
from app.services.provisioning_service import (
    ProvisionRequest, ProvisionResult, get_provisioning_workflow,
)
from app.utils.form_data import group_form_fields, split_key

router = APIRouter(prefix="/accounts", tags=["Accounts"])

registration_adapter = TypeAdapter(RegistrationPayload)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Rejected, duplicate or invalid profile"},
    403: {"model": ErrorResponse, "description": "Administrator accounts need an administrator"},
    500: {"model": ErrorResponse, "description": "Storage unavailable"},
}


def to_provision_response(result: ProvisionResult, message: str) -> ProvisionResponse:
    """Shape a workflow result into the public response."""
    profile = None
    if result.profile is not None:
        view = CandidateProfileView if result.profile_type == "candidate" else EmployerProfileView
        profile = view(id=result.profile["_id"], **result.profile)

    return ProvisionResponse(
        message=message,
        account=AccountView(id=result.account["_id"], **result.account),
        profile=profile,
        profile_type=result.profile_type,
        tokens=TokenPair(
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
        ),
        registration_complete=result.registration_complete,
        next_step=result.next_step,
    )


async def read_registration(request: Request) -> Tuple[dict, List[IncomingFile]]:
    """Pull the registration fields and any uploads out of a JSON or multipart request."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        fields, files = [], []
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if not value.filename:
                    continue
                purpose = split_key(key)[-1].rstrip("[]")
                files.append(IncomingFile(purpose=purpose, filename=value.filename, content=await value.read()))
            else:
                fields.append((key, value))
        return group_form_fields(fields), files

    try:
        body = await request.json()
    except ValueError:
        raise RequestRejected("Request body must be JSON or multipart form data")
    if not isinstance(body, dict):
        raise RequestRejected("Request body must be a JSON object")
    return body, []


@router.post("", response_model=ProvisionResponse, status_code=201, responses=ERROR_RESPONSES)
async def register(
    request: Request,
    current: Optional[dict] = Depends(get_optional_account),
    workflow=Depends(get_provisioning_workflow),
):
    """
    Create an account and its profile in one call.

    Nested role data goes under "candidate" or "company". Files go in
    multipart fields resume, profilePhoto, coverLetter, certificates[]
    (candidates) or logo (employers).
    """
    data, files = await read_registration(request)

    try:
        payload = registration_adapter.validate_python(data)
    except ValidationError as e:
        raise RequestRejected(format_validation_errors(e.errors()))

    role = AccountRole(payload.role)
    if role == AccountRole.administrator and (current is None or current["role"] != "administrator"):
        raise PermissionDenied("Only administrators can create administrator accounts")

    result = await workflow.provision(ProvisionRequest(
        email=payload.email,
        role=role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        password=payload.password,
        candidate=getattr(payload, "candidate", None),
        company=getattr(payload, "company", None),
        files=files,
    ))

    return to_provision_response(result, f"Registered successfully as {role.value}")


@router.get("/uploads/formats")
async def upload_formats():
    """Accepted upload types per field."""
    return get_supported_formats()
