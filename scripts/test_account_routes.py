"""
Registration endpoint tests - POST /api/accounts

Run: pytest scripts/test_account_routes.py
"""
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from app.core.config import get_settings
from app.services.mongo_service import CandidateProfileStore
from app.services.provisioning_service import (
    AccountProvisioningWorkflow, get_provisioning_workflow,
)


def register(client, **body):
    return client.post("/api/accounts", json=body)


def candidate_body(email="a@x.com", **extra):
    body = {
        "email": email,
        "password": "Passw0rd!",
        "firstName": "Ada",
        "lastName": "Lovelace",
        "role": "candidate",
    }
    body.update(extra)
    return body


def test_scenario_a_candidate_registration(client):
    response = register(client, **candidate_body())

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["profileType"] == "candidate"
    assert data["nextStep"] == "dashboard"
    assert data["registrationComplete"] is True
    assert data["account"]["email"] == "a@x.com"
    assert data["account"]["role"] == "candidate"
    assert data["account"]["authProvider"] == "local"
    assert "passwordHash" not in data["account"]
    assert data["profile"]["profileType"] == "candidate"
    assert data["profile"]["yearsExperience"] == ""
    assert data["profile"]["fullName"] == "Ada Lovelace"
    assert data["tokens"]["accessToken"]
    assert data["tokens"]["refreshToken"]
    assert data["tokens"]["tokenType"] == "bearer"


def test_scenario_b_employer_without_company(client, db):
    response = register(client, email="b@x.com", password="Passw0rd!",
                        firstName="Grace", lastName="Hopper", role="employer")

    assert response.status_code == 201
    data = response.json()
    assert data["registrationComplete"] is True
    assert data["nextStep"] == "complete-company-profile"
    assert data["profileType"] == "employer"
    assert data["profile"]["isVerified"] is False
    assert data["profile"]["contact"]["email"] == "b@x.com"


def test_scenario_c_duplicate_email(client, db):
    assert register(client, **candidate_body()).status_code == 201
    accounts_before = db["accounts"].count_documents({})
    profiles_before = db["candidate_profiles"].count_documents({})

    response = register(client, **candidate_body(email="A@x.com"))

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["category"] == "DuplicateAccount"
    assert "already exists" in data["messages"][0]
    assert db["accounts"].count_documents({}) == accounts_before
    assert db["candidate_profiles"].count_documents({}) == profiles_before


def test_scenario_d_invalid_experience_band(client, db):
    response = register(client, **candidate_body(candidate={"yearsExperience": "invalid-band"}))

    assert response.status_code == 400
    data = response.json()
    assert data["category"] == "ProfileValidationFailed"
    assert db["accounts"].find_one({"email": "a@x.com"}) is None


def test_employer_with_company_json(client):
    company = {
        "name": "Acme Mining",
        "industry": ["mining", "construction"],
        "founded": "1999",
        "state": "WA",
        "contact": {"phone": "0400000000"},
    }
    response = register(client, email="b@x.com", password="Passw0rd!", firstName="Grace",
                        lastName="Hopper", role="employer", company=company)

    assert response.status_code == 201
    data = response.json()
    assert data["nextStep"] == "dashboard"
    assert data["profile"]["industry"] == ["mining", "construction"]
    assert data["profile"]["founded"] == 1999
    assert data["profile"]["contact"] == {"email": "b@x.com", "phone": "0400000000"}


def test_missing_password_is_request_rejected(client, db):
    body = candidate_body()
    del body["password"]
    response = register(client, **body)

    assert response.status_code == 400
    assert response.json()["category"] == "RequestRejected"
    assert db["accounts"].count_documents({}) == 0


def test_invalid_email_is_request_rejected(client):
    response = register(client, **candidate_body(email="not-an-email"))
    assert response.status_code == 400
    assert response.json()["category"] == "RequestRejected"


def test_unknown_role_is_request_rejected(client):
    response = register(client, **candidate_body(role="recruiter"))
    assert response.status_code == 400
    assert response.json()["category"] == "RequestRejected"


def test_administrator_cannot_self_register(client, db):
    response = register(client, **candidate_body(email="root@x.com", role="administrator"))
    assert response.status_code == 403
    assert db["accounts"].count_documents({}) == 0


def test_administrator_can_create_administrator(client, workflow, db):
    import asyncio
    from app.schemas.schemas import AccountRole
    from app.services.provisioning_service import ProvisionRequest

    root = asyncio.run(workflow.provision(ProvisionRequest(
        email="root@x.com", role=AccountRole.administrator,
        first_name="Root", last_name="User", password="Passw0rd!",
    )))
    response = client.post(
        "/api/accounts",
        json=candidate_body(email="ops@x.com", role="administrator"),
        headers={"Authorization": f"Bearer {root.tokens.access_token}"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["profile"] is None
    assert data["registrationComplete"] is False


def test_multipart_registration_with_nested_fields_and_files(client, upload_dir):
    response = client.post(
        "/api/accounts",
        data={
            "email": "c@x.com",
            "password": "Passw0rd!",
            "firstName": "Mary",
            "lastName": "Jackson",
            "role": "candidate",
            "candidate.yearsExperience": "1-3",
            "candidate.preferredIndustries": ["health", "childcare"],
            "candidate[salaryExpectation]": "72000",
            "candidate.isOpenToWork": "false",
        },
        files=[
            ("resume", ("cv.pdf", b"%PDF-1.4", "application/pdf")),
            ("certificates[]", ("cert-1.pdf", b"%PDF-1.4", "application/pdf")),
            ("certificates[]", ("cert-2.docx", b"PK", "application/octet-stream")),
        ],
    )

    assert response.status_code == 201
    profile = response.json()["profile"]
    assert profile["yearsExperience"] == "1-3"
    assert profile["preferredIndustries"] == ["health", "childcare"]
    assert profile["salaryExpectation"] == 72000
    assert profile["isOpenToWork"] is False
    assert profile["resumeUrl"].startswith("/uploads/resume-")
    assert len(profile["certificates"]) == 2
    assert len(list(upload_dir.iterdir())) == 3


def test_multipart_employer_with_logo(client):
    response = client.post(
        "/api/accounts",
        data={
            "email": "d@x.com",
            "password": "Passw0rd!",
            "firstName": "Dorothy",
            "lastName": "Vaughan",
            "role": "employer",
            "company.name": "Vaughan Care",
            "company.industry": "childcare",
            "company.founded": "2005",
            "company.contact.email": "Hello@VaughanCare.io",
        },
        files={"logo": ("logo.svg", b"<svg/>", "image/svg+xml")},
    )

    assert response.status_code == 201
    profile = response.json()["profile"]
    assert profile["industry"] == ["childcare"]
    assert profile["founded"] == 2005
    assert profile["logo"].startswith("/uploads/logo-")
    assert profile["contact"]["email"] == "hello@vaughancare.io"


def test_multipart_bad_logo_type_rejected(client, db, upload_dir):
    response = client.post(
        "/api/accounts",
        data={
            "email": "d@x.com",
            "password": "Passw0rd!",
            "firstName": "Dorothy",
            "lastName": "Vaughan",
            "role": "employer",
        },
        files={"logo": ("logo.gif", b"GIF89a", "image/gif")},
    )

    assert response.status_code == 400
    assert response.json()["category"] == "UploadRejected"
    assert db["accounts"].count_documents({}) == 0
    assert not upload_dir.exists() or list(upload_dir.iterdir()) == []


def test_upload_formats(client):
    response = client.get("/api/accounts/uploads/formats")
    assert response.status_code == 200
    data = response.json()
    assert data["max_size_mb"] == 10
    assert ".pdf" in data["fields"]["resume"]
    assert ".png" in data["fields"]["logo"]


def test_request_id_header(client):
    response = register(client, **candidate_body())
    assert response.headers["X-Request-ID"]


def test_unhashable_industry_is_profile_validation_failure(client, db):
    response = register(client, email="b@x.com", password="Passw0rd!",
                        firstName="Grace", lastName="Hopper", role="employer",
                        company={"name": "Acme", "industry": {"x": 1}})

    assert response.status_code == 400
    assert response.json()["category"] == "ProfileValidationFailed"
    assert db["accounts"].count_documents({}) == 0
    assert db["companies"].count_documents({}) == 0


# ============================================================
# STORAGE FAILURES
# ============================================================

class BrokenProfileStore(CandidateProfileStore):
    def insert(self, doc):
        raise PyMongoError("profile write failed")


@pytest.fixture
def broken_client(db, file_storage, identity):
    from app.main import app

    workflow = AccountProvisioningWorkflow(
        candidates=BrokenProfileStore(), files=file_storage, identity=identity,
    )
    app.dependency_overrides[get_provisioning_workflow] = lambda: workflow
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def debug_mode(monkeypatch):
    monkeypatch.setenv("DEBUG", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_storage_failure_is_500_without_diagnostic(broken_client, db):
    response = register(broken_client, **candidate_body())

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert data["category"] == "StorageUnavailable"
    assert data["messages"]
    assert "diagnostic" not in data
    assert db["accounts"].count_documents({}) == 0


def test_storage_failure_diagnostic_in_debug_mode(debug_mode, broken_client, db):
    response = register(broken_client, **candidate_body())

    assert response.status_code == 500
    data = response.json()
    assert data["category"] == "StorageUnavailable"
    assert "Traceback" in data["diagnostic"]
    assert db["accounts"].count_documents({}) == 0
