"""
MongoDB Service - CRUD operations for document collections.

Collections in this database:
1. accounts            - Login identity, credential mode, refresh token
2. candidate_profiles  - Candidate profile, one per candidate account
3. companies           - Employer profile, one per employer account

Every store exposes the same four operations:
    insert(doc) -> id            (raises pymongo DuplicateKeyError)
    find_one(filter) -> doc|None
    delete_by_id(id) -> None
    update_by_id(id, patch) -> doc|None
"""

from datetime import datetime
from typing import Optional, Dict, Any
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from app.db.mongodb import get_collection, COLLECTIONS


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def to_object_id(value) -> Optional[ObjectId]:
    """Parse an id string; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class DocumentStore:
    """
    Base store for one collection.
    Timestamps are set here so callers never have to.
    """

    collection_key: str = ""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS[self.collection_key])

    def insert(self, doc: Dict[str, Any]) -> str:
        """
        Insert a document.

        Returns:
            MongoDB ObjectId as string

        Raises:
            pymongo.errors.DuplicateKeyError when a unique index rejects it
        """
        now = datetime.utcnow()
        doc = {**doc, "created_at": now, "updated_at": now}
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def find_one(self, filter: Dict[str, Any]) -> Optional[dict]:
        return serialize_doc(self.collection.find_one(filter))

    def get_by_id(self, mongo_id: str) -> Optional[dict]:
        oid = to_object_id(mongo_id)
        if oid is None:
            return None
        return self.find_one({"_id": oid})

    def delete_by_id(self, mongo_id: str) -> None:
        oid = to_object_id(mongo_id)
        if oid is not None:
            self.collection.delete_one({"_id": oid})

    def update_by_id(self, mongo_id: str, patch: Dict[str, Any]) -> Optional[dict]:
        """Apply a $set patch; returns the updated document."""
        oid = to_object_id(mongo_id)
        if oid is None:
            return None
        doc = self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": {**patch, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return serialize_doc(doc)

    def count(self, filter: Dict[str, Any]) -> int:
        return self.collection.count_documents(filter)


# ============================================================
# ACCOUNTS COLLECTION
# ============================================================

class AccountStore(DocumentStore):
    """
    Handles account documents.
    Email is stored lower-cased; the unique index on it is the
    source of truth for "one account per email".
    """

    collection_key = "accounts"

    def find_by_email(self, email: str) -> Optional[dict]:
        return self.find_one({"email": email.strip().lower()})

    def set_refresh_token(self, account_id: str, refresh_token: Optional[str]) -> Optional[dict]:
        return self.update_by_id(account_id, {"refresh_token": refresh_token})


# ============================================================
# PROFILE COLLECTIONS
# ============================================================

class ProfileStore(DocumentStore):
    """Profiles are keyed 1:1 to an account through account_id."""

    def find_by_account(self, account_id: str) -> Optional[dict]:
        return self.find_one({"account_id": account_id})

    def delete_by_account(self, account_id: str) -> None:
        self.collection.delete_many({"account_id": account_id})


class CandidateProfileStore(ProfileStore):
    collection_key = "candidate_profiles"


class CompanyStore(ProfileStore):
    collection_key = "companies"
