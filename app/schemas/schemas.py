"""
Pydantic Schemas - Request/Response/Document Validation

All API request, response and stored-document schemas in one file.
Python attributes are snake_case; JSON on the wire is camelCase.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from humps import camelize
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    return camelize(string)


class CamelModel(BaseModel):
    """
    Base model that reads and writes camelCase JSON.

    Usage:
        class MyResponse(CamelModel):
            next_step: str  # JSON: nextStep
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================
# ENUMS
# ============================================================

class AccountRole(str, Enum):
    candidate = "candidate"
    employer = "employer"
    administrator = "administrator"


class AuthProvider(str, Enum):
    local = "local"
    federated = "federated"


class ExperienceBand(str, Enum):
    none = ""
    junior = "0-1"
    early = "1-3"
    mid = "3-5"
    senior = "5-10"
    veteran = "10+"


class Industry(str, Enum):
    health = "health"
    hospitality = "hospitality"
    childcare = "childcare"
    construction = "construction"
    mining = "mining"
    technology = "technology"


class VisaStatus(str, Enum):
    none = ""
    citizen = "citizen"
    pr = "pr"
    visa_holder = "visa_holder"
    needs_sponsorship = "needs_sponsorship"


class CompanySize(str, Enum):
    none = ""
    micro = "1-10"
    small = "11-50"
    medium = "51-200"
    large = "201-500"
    xlarge = "501-1000"
    enterprise = "1000+"


class Region(str, Enum):
    none = ""
    nsw = "NSW"
    vic = "VIC"
    qld = "QLD"
    wa = "WA"
    sa = "SA"
    tas = "TAS"
    act = "ACT"
    nt = "NT"


class NextStep(str, Enum):
    dashboard = "dashboard"
    complete_company_profile = "complete-company-profile"


# ============================================================
# REGISTRATION PAYLOADS (transport shape)
# Role-specific forms stay loosely typed here; the strict checks
# happen when the profile document is built.
# ============================================================

class CandidateForm(CamelModel):
    model_config = ConfigDict(extra="ignore")

    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    state: Optional[str] = None
    preferred_role: Optional[str] = None
    current_role: Optional[str] = None
    current_company: Optional[str] = None
    years_experience: Optional[str] = None
    skills: Optional[str] = None
    education: Optional[str] = None
    preferred_industries: Any = None
    salary_expectation: Any = None
    available_from: Any = None
    visa_status: Optional[str] = None
    portfolio_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    is_open_to_work: Any = None


class ContactForm(CamelModel):
    email: Optional[str] = None
    phone: Optional[str] = None


class CompanyForm(CamelModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    size: Optional[str] = None
    founded: Any = None
    industry: Any = None
    location: Optional[str] = None
    state: Optional[str] = None
    contact: Optional[ContactForm] = None


class RegistrationBase(CamelModel):
    email: EmailStr
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    phone: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("first_name", "last_name", "phone", mode="before")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value


class CandidateRegistration(RegistrationBase):
    role: Literal["candidate"]
    candidate: Optional[CandidateForm] = None


class EmployerRegistration(RegistrationBase):
    role: Literal["employer"]
    company: Optional[CompanyForm] = None


class AdministratorRegistration(RegistrationBase):
    role: Literal["administrator"]


RegistrationPayload = Annotated[
    Union[CandidateRegistration, EmployerRegistration, AdministratorRegistration],
    Field(discriminator="role"),
]


class FederatedRegistration(CamelModel):
    """Body of POST /auth/federated: the assertion replaces the password."""

    assertion: str = Field(..., min_length=1)
    role: Literal["candidate", "employer"] = "candidate"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    candidate: Optional[CandidateForm] = None
    company: Optional[CompanyForm] = None


# ============================================================
# STORED DOCUMENTS (strict shape of what goes into MongoDB)
# ============================================================

def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CandidateProfileDocument(BaseModel):
    account_id: str
    full_name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    state: Region = Region.none
    preferred_role: str = ""
    current_role: str = ""
    current_company: str = ""
    years_experience: ExperienceBand = ExperienceBand.none
    skills: str = ""
    education: str = ""
    preferred_industries: List[Industry] = []
    salary_expectation: Optional[float] = Field(None, ge=0)
    available_from: Optional[date] = None
    visa_status: VisaStatus = VisaStatus.none
    profile_photo: str = ""
    resume_url: str = ""
    cover_letter_url: str = ""
    certificates: List[str] = []
    portfolio_url: str = ""
    linkedin_url: str = ""
    is_open_to_work: bool = True
    profile_views: int = 0

    @field_validator("salary_expectation", "available_from", mode="before")
    @classmethod
    def blank_optional(cls, value):
        return _blank_to_none(value)

    @field_validator("preferred_industries")
    @classmethod
    def dedupe_industries(cls, value):
        return list(dict.fromkeys(value))


class CompanyContact(BaseModel):
    email: str = ""
    phone: str = ""


class CompanyDocument(BaseModel):
    account_id: str
    name: str = ""
    description: str = ""
    website: str = ""
    logo: str = ""
    size: CompanySize = CompanySize.none
    founded: Optional[int] = None
    industry: List[Industry] = []
    location: str = ""
    state: Region = Region.none
    contact: CompanyContact = CompanyContact()
    is_verified: bool = False

    @field_validator("founded", mode="before")
    @classmethod
    def blank_founded(cls, value):
        return _blank_to_none(value)

    @field_validator("founded")
    @classmethod
    def founded_in_range(cls, value):
        if value is None:
            return value
        current_year = datetime.utcnow().year
        if not 1800 <= value <= current_year:
            raise ValueError(f"must be between 1800 and {current_year}")
        return value

    @field_validator("website")
    @classmethod
    def website_scheme(cls, value):
        if value and not value.startswith(("http://", "https://")):
            raise ValueError("must be a valid URL starting with http:// or https://")
        return value

    @field_validator("industry")
    @classmethod
    def dedupe_industry(cls, value):
        return list(dict.fromkeys(value))


# ============================================================
# RESPONSE PROJECTIONS
# ============================================================

class AccountView(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: AccountRole
    auth_provider: AuthProvider
    is_email_verified: bool
    created_at: Optional[datetime] = None


class CandidateProfileView(CamelModel):
    profile_type: Literal["candidate"] = "candidate"
    id: str
    account_id: str
    full_name: str
    email: str
    phone: str
    location: str
    state: str
    preferred_role: str
    current_role: str
    current_company: str
    years_experience: str
    skills: str
    education: str
    preferred_industries: List[str]
    salary_expectation: Optional[float] = None
    available_from: Optional[date] = None
    visa_status: str
    profile_photo: str
    resume_url: str
    cover_letter_url: str
    certificates: List[str]
    portfolio_url: str
    linkedin_url: str
    is_open_to_work: bool


class EmployerProfileView(CamelModel):
    profile_type: Literal["employer"] = "employer"
    id: str
    account_id: str
    name: str
    description: str
    website: str
    logo: str
    size: str
    founded: Optional[int] = None
    industry: List[str]
    location: str
    state: str
    contact: CompanyContact
    is_verified: bool


ProfileView = Annotated[
    Union[CandidateProfileView, EmployerProfileView],
    Field(discriminator="profile_type"),
]


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class ProvisionResponse(CamelModel):
    success: bool = True
    message: str
    account: AccountView
    profile: Optional[ProfileView] = None
    profile_type: Optional[str] = None
    tokens: TokenPair
    registration_complete: bool
    next_step: NextStep


# ============================================================
# AUTH SCHEMAS
# ============================================================

class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class SessionResponse(CamelModel):
    success: bool = True
    account: AccountView
    tokens: TokenPair


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class ErrorResponse(BaseModel):
    success: bool = False
    category: str
    messages: List[str]
    diagnostic: Optional[str] = None
