"""Pydantic schemas for reminder opt-in endpoints."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class PushKeysSchema(BaseModel):
    p256dh: str = Field(..., min_length=1, max_length=255)
    auth: str = Field(..., min_length=1, max_length=255)


class PushSubscriptionSchema(BaseModel):
    """Browser ``PushSubscription.toJSON()`` shape."""

    model_config = ConfigDict(populate_by_name=True)

    endpoint: str = Field(..., min_length=1, max_length=1024)
    keys: PushKeysSchema
    expiration_time: int | None = Field(None, alias="expirationTime")


class SubscriptionRequest(BaseModel):
    """Opt in to (or out of) reminders for one event on one or both channels."""

    model_config = ConfigDict(populate_by_name=True)

    event_id: str = Field(..., min_length=1, max_length=128, alias="eventId")
    email: EmailStr | None = None
    custom_offset_minutes: int | None = Field(None, ge=0, alias="customOffsetMinutes")
    push_subscription: PushSubscriptionSchema | None = Field(None, alias="pushSubscription")


class SubscriptionResponse(BaseModel):
    event_id: str
    email: bool = False
    push: bool = False
