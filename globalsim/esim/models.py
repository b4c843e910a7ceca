from dataclasses import dataclass
from typing import Literal, Optional
from pydantic import BaseModel, Field

ESIMProviderId = Literal["demo", "enterprise"]
ProfileStatus = Literal["inactive", "active", "suspended", "expired"]


class CreateESIMIn(BaseModel):
    country: str = Field(..., min_length=2, max_length=2, examples=["US"])
    dataplan: str = Field(..., min_length=1, examples=["5gb-30d"])
    provider: Optional[ESIMProviderId] = None


class ICCIDIn(BaseModel):
    iccid: str = Field(..., min_length=19, max_length=22, pattern=r"^\d+$")


@dataclass
class ESIMProfile:
    id: str
    iccid: str
    msisdn: str
    country: str
    provider: str
    provider_id: str
    dataplan: str
    activation_code: str
    created_at: float
    expires_at: float
    data_limit: int
    status: ProfileStatus = "inactive"
    qr_code: Optional[str] = None
    user_id: str = ""
    data_used: int = 0
    activated_at: Optional[float] = None
