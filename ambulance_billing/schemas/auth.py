from pydantic import BaseModel, ConfigDict, EmailStr

from ambulance_billing.models.enums import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: UserRole
    user_id: str


class Principal(BaseModel):
    """
    Authenticated caller as seen by the workflow engine.
    Only id, role and the active flag are trusted.
    """
    id: str
    role: UserRole
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True, frozen=True)
