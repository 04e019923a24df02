"""Admin Pydantic Schemas - regions, ambulances and users"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ambulance_billing.models.enums import UserRole


# Regions
class RegionCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    city: str = Field(..., min_length=2, max_length=255)
    state: str = Field(..., min_length=2, max_length=255)


class RegionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    city: Optional[str] = Field(None, min_length=2, max_length=255)
    state: Optional[str] = Field(None, min_length=2, max_length=255)


class RegionResponse(BaseModel):
    id: str
    name: str
    city: str
    state: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Ambulances
class AmbulanceCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    code: str = Field(..., min_length=2, max_length=64)
    region_id: str
    operator_ids: List[str] = []


class AmbulanceUpdate(BaseModel):
    """Region is fixed at creation and cannot be changed."""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    code: Optional[str] = Field(None, min_length=2, max_length=64)
    operator_ids: Optional[List[str]] = None


class AmbulanceResponse(BaseModel):
    id: str
    name: str
    code: str
    region_id: str
    operator_ids: List[str] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Users
class UserCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, description="Password must be at least 6 characters")
    role: UserRole
    region_ids: List[str] = []
    ambulance_ids: List[str] = []


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6)
    region_ids: Optional[List[str]] = None
    ambulance_ids: Optional[List[str]] = None


class UserResponse(BaseModel):
    id: str
    name: str
    email: EmailStr
    role: UserRole
    is_active: bool
    region_ids: List[str] = []
    ambulance_ids: List[str] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
