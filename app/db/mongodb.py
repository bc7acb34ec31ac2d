"""
MongoDB Connection Utility

MongoDB stores:
- Accounts (login identity, credential, refresh token)
- Candidate profiles (1:1 with a candidate account)
- Companies (employer profiles, 1:1 with an employer account)

Uniqueness is enforced HERE, by indexes, not by application checks:
- accounts.email
- candidate_profiles.account_id
- companies.account_id
"""
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
import structlog

from app.core.config import get_settings

logger = structlog.get_logger()

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(get_settings().mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the application database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[get_settings().mongodb_db]
    return _db


def use_database(db: Database) -> None:
    """Point the module at an already-open database (test fixtures, scripts)."""
    global _db
    _db = db


def get_collection(name: str) -> Collection:
    """Get a specific collection by its COLLECTIONS value."""
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.warning("MongoDB connection failed", error=str(e))
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "accounts": "accounts",
    "candidate_profiles": "candidate_profiles",
    "companies": "companies",
}


def init_mongo_indexes():
    """
    Create indexes. Call this once during app startup.
    The unique ones are what the provisioning workflow relies on.
    """
    db = get_mongo_db()

    db[COLLECTIONS["accounts"]].create_index(
        [("email", ASCENDING)], unique=True, name="uniq_account_email"
    )
    db[COLLECTIONS["candidate_profiles"]].create_index(
        [("account_id", ASCENDING)], unique=True, name="uniq_candidate_account"
    )
    db[COLLECTIONS["companies"]].create_index(
        [("account_id", ASCENDING)], unique=True, name="uniq_company_account"
    )

    # Lookup indexes
    db[COLLECTIONS["candidate_profiles"]].create_index("preferred_industries")
    db[COLLECTIONS["candidate_profiles"]].create_index("years_experience")
    db[COLLECTIONS["companies"]].create_index("industry")

    logger.info("MongoDB indexes created")
