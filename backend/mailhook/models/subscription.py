"""
Subscription-related Pydantic models.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Subscription(BaseModel):
    """Change subscription as owned and returned by Graph."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    change_type: Optional[str] = Field(None, alias="changeType")
    resource: Optional[str] = None
    notification_url: Optional[str] = Field(None, alias="notificationUrl")
    # Graph sends 7 fractional digits, kept verbatim
    expiration_date_time: Optional[str] = Field(None, alias="expirationDateTime")
    client_state: Optional[str] = Field(None, alias="clientState")


class CreateSubscriptionRequest(BaseModel):
    """Body for POST /subscriptions."""
    expiration_minutes: Optional[int] = None


class RenewSubscriptionRequest(BaseModel):
    """Body for PATCH /subscriptions/{id}."""
    expiration_minutes: Optional[int] = None


class DeletionResult(BaseModel):
    """Outcome of deleting one subscription."""
    subscription_id: str
    success: bool
    error: Optional[str] = None


class DeleteAllResult(BaseModel):
    """Per-item outcome of a delete-all fan-out."""
    results: List[DeletionResult] = []

    @property
    def deleted(self) -> List[str]:
        return [r.subscription_id for r in self.results if r.success]

    @property
    def failed(self) -> List[str]:
        return [r.subscription_id for r in self.results if not r.success]
