from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from kisaan_auth.domains.users.schemas import UserOut


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Request fields are optional so missing values reach the service's own checks
# and come back as 400s with a readable message.
class OTPSendIn(BaseModel):
    mobile: str | None = None


class OTPSendOut(_CamelModel):
    success: bool = True
    message: str
    mobile: str
    session_id: str
    provider: str
    expires_in: str
    otp: str | None = None


class OTPVerifyIn(BaseModel):
    mobile: str | None = None
    otp: str | None = None
    name: str | None = None


class VerifiedUserOut(UserOut):
    is_new_user: bool


class OTPVerifyOut(_CamelModel):
    success: bool = True
    message: str = "OTP verified successfully"
    token: str
    user: VerifiedUserOut
