"""
Profile Builder - turn registration forms into profile documents.

A profile is always built, even from a bare payload: every optional
field falls back to an empty string, empty list or neutral enum so the
user can finish it later from the dashboard.
"""

from datetime import date, datetime, time
from typing import Dict, List, Optional

from pydantic import ValidationError

from app.core.errors import ProfileValidationFailed
from app.schemas.schemas import (
    CandidateForm, CandidateProfileDocument, CompanyDocument, CompanyForm,
)
from app.utils.form_data import coerce_bool, coerce_date, coerce_number, coerce_set


def _text(value) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else value


def _validation_messages(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()))
        messages.append(f"{field}: {err.get('msg', 'Invalid value')}")
    return messages


def to_mongo(document) -> dict:
    """Dump a validated document with enums as plain values and dates as datetimes."""
    doc = document.model_dump(mode="json")
    for key, value in document:
        # BSON has no date type
        if isinstance(value, date) and not isinstance(value, datetime):
            doc[key] = datetime.combine(value, time.min)
    return doc


def build_candidate_profile(
    account: dict,
    form: Optional[CandidateForm],
    uploads: Dict[str, object],
) -> dict:
    """
    Build the candidate_profiles document for a new candidate account.

    Args:
        account: the freshly inserted account (needs _id, names, email, phone)
        form: nested candidate.* fields, or None
        uploads: purpose -> reference path (certificates -> list of paths)

    Raises:
        ProfileValidationFailed with one message per bad field
    """
    form = form or CandidateForm()
    full_name = _text(form.full_name) or f"{account['first_name']} {account['last_name']}".strip()

    raw = {
        "account_id": account["_id"],
        "full_name": full_name,
        "email": account["email"],
        "phone": _text(form.phone) or account.get("phone") or "",
        "location": _text(form.location),
        "state": _text(form.state),
        "preferred_role": _text(form.preferred_role),
        "current_role": _text(form.current_role),
        "current_company": _text(form.current_company),
        "years_experience": _text(form.years_experience),
        "skills": _text(form.skills),
        "education": _text(form.education),
        "preferred_industries": coerce_set(form.preferred_industries),
        "salary_expectation": coerce_number(form.salary_expectation),
        "available_from": coerce_date(form.available_from),
        "visa_status": _text(form.visa_status),
        "profile_photo": uploads.get("profilePhoto", ""),
        "resume_url": uploads.get("resume", ""),
        "cover_letter_url": uploads.get("coverLetter", ""),
        "certificates": list(uploads.get("certificates", [])),
        "portfolio_url": _text(form.portfolio_url),
        "linkedin_url": _text(form.linkedin_url),
        "is_open_to_work": coerce_bool(form.is_open_to_work, default=True),
    }

    try:
        return to_mongo(CandidateProfileDocument(**raw))
    except ValidationError as e:
        raise ProfileValidationFailed(_validation_messages(e))


def build_company_profile(
    account: dict,
    form: Optional[CompanyForm],
    uploads: Dict[str, object],
) -> dict:
    """
    Build the companies document for a new employer account.

    Contact details default to the account's own email and phone.
    is_verified is always False here; only administrators flip it.
    """
    form = form or CompanyForm()
    contact = form.contact

    raw = {
        "account_id": account["_id"],
        "name": _text(form.name),
        "description": _text(form.description),
        "website": _text(form.website),
        "logo": uploads.get("logo", ""),
        "size": _text(form.size),
        "founded": coerce_number(form.founded),
        "industry": coerce_set(form.industry),
        "location": _text(form.location),
        "state": _text(form.state),
        "contact": {
            "email": (_text(contact.email) if contact else "").lower() or account["email"],
            "phone": (_text(contact.phone) if contact else "") or account.get("phone") or "",
        },
        "is_verified": False,
    }

    try:
        return to_mongo(CompanyDocument(**raw))
    except ValidationError as e:
        raise ProfileValidationFailed(_validation_messages(e))


def has_company_details(form: Optional[CompanyForm]) -> bool:
    """True when the employer sent at least a company name."""
    return bool(form is not None and _text(form.name))
