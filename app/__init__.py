"""
Job Board Accounts Service
Registration, login and session tokens for a job-board platform.

Architecture:
- MongoDB: accounts, candidate profiles, companies (unique indexes do the
  duplicate detection)
- Local disk: registration uploads (resumes, photos, logos)
- JWT: access + refresh token pair per session
"""

__version__ = "1.0.0"
