"""
Schemas module - Request/Response/Document schemas.

Everything lives in app.schemas.schemas:
- Registration payloads (what the API accepts)
- Stored documents (what goes into MongoDB)
- Response projections (what the API returns)
"""
