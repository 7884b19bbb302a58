from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    mobile: str
    name: str
    email: str
    role: str
    verified: bool


class MeOut(BaseModel):
    success: bool = True
    user: UserOut
