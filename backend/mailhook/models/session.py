"""
Session-related Pydantic models.
"""
from pydantic import BaseModel
from datetime import datetime


class Session(BaseModel):
    """Server-side session record. Holds only the provider account id."""
    session_id: str
    home_account_id: str
    created_at: datetime
    session_expiry: datetime
