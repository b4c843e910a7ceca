from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

SMSProviderId = Literal["demo", "twilio", "aws"]


class SendOTPIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(..., alias="phoneNumber", min_length=1, max_length=32, examples=["+15551234567"])
    template: Optional[str] = Field(None, max_length=480)
    provider: Optional[SMSProviderId] = None


class VerifyOTPIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(..., alias="phoneNumber", min_length=1, max_length=32, examples=["+15551234567"])
    code: str = Field(..., min_length=4, max_length=10, pattern=r"^\d+$", examples=["123456"])


class DeliveryStatusIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: SMSProviderId
    message_id: str = Field(..., alias="messageId", min_length=1, max_length=128)
