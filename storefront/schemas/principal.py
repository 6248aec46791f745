# storefront/schemas/principal.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from storefront.db.models import StaffRole


class PrincipalBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr

    @field_validator('name')
    @classmethod
    def name_must_not_be_blank(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty or whitespace only')
        return v.strip()

class BuyerCreate(PrincipalBase):
    password: str = Field(..., min_length=6, max_length=128)

class StaffCreate(PrincipalBase):
    password: str = Field(..., min_length=6, max_length=128)
    role: StaffRole = StaffRole.employee

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class BuyerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr
    created_at: datetime

class StaffOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr
    role: StaffRole
    created_at: datetime

class BuyerSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    principal: BuyerOut

class StaffSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    principal: StaffOut
