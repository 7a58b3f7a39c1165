"""
User-related Pydantic models.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class UserResponse(BaseModel):
    """Signed-in user's profile as returned by Graph /me."""
    model_config = ConfigDict(populate_by_name=True)

    display_name: Optional[str] = Field(None, alias="displayName")
    user_principal_name: Optional[str] = Field(None, alias="userPrincipalName")
