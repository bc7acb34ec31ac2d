"""
Shared pytest fixtures.

MongoDB is replaced by mongomock (it enforces unique indexes and raises
DuplicateKeyError like the real server). Uploads go to a tmp directory.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("BCRYPT_ROUNDS", "10")
os.environ.setdefault("JWT_SECRET_KEY", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET_KEY", "test-refresh-secret")

import mongomock
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from app.db import mongodb
from app.services.file_storage import FileStorageService
from app.services.identity_service import IdentityVerifier
from app.services.provisioning_service import (
    AccountProvisioningWorkflow, get_provisioning_workflow,
)

ISSUER = "https://id.example-provider.io"
AUDIENCE = "jobboard-test"


@pytest.fixture
def db():
    database = mongomock.MongoClient()["jobboard_test"]
    mongodb.use_database(database)
    mongodb.init_mongo_indexes()
    yield database
    mongodb.use_database(None)


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def file_storage(upload_dir):
    return FileStorageService(upload_dir=str(upload_dir))


@pytest.fixture(scope="session")
def rsa_keys():
    """(private_pem, public_pem) for signing federated assertions."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def identity(rsa_keys):
    return IdentityVerifier(public_key=rsa_keys[1], issuer=ISSUER, audience=AUDIENCE)


@pytest.fixture
def workflow(db, file_storage, identity):
    return AccountProvisioningWorkflow(files=file_storage, identity=identity)


@pytest.fixture
def client(db, workflow):
    from app.main import app

    app.dependency_overrides[get_provisioning_workflow] = lambda: workflow
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
