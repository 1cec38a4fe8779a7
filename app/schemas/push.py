"""Push subscription schemas."""

from pydantic import BaseModel, Field, field_validator


class WebPushKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class WebPushSubscriptionRequest(BaseModel):
    """Browser PushSubscription as serialized by ``subscription.toJSON()``."""

    endpoint: str = Field(min_length=1, max_length=2048)
    keys: WebPushKeys

    @field_validator("endpoint")
    @classmethod
    def endpoint_must_be_https(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("endpoint must be an https URL")
        return value


class MobilePushTokenRequest(BaseModel):
    """Expo push token, e.g. ``ExponentPushToken[xxxx]``."""

    token: str = Field(min_length=1, max_length=255)


class VapidKeyResponse(BaseModel):
    public_key: str


class PushStatusResponse(BaseModel):
    success: bool
