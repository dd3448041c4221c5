from pydantic import BaseModel, EmailStr, validator
from typing import Optional
from datetime import datetime

from studyspace.auth.permissions import ALL_ROLES, SELF_REGISTER_ROLES

class UserBase(BaseModel):
    full_name: str
    email: EmailStr
    phone: Optional[str] = None

class UserCreate(UserBase):
    password: str
    role: str = "student"
    referral_code: Optional[str] = None
    
    @validator("password")
    def password_length(cls, v):
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v
    
    @validator("role")
    def self_register_role(cls, v):
        if v not in SELF_REGISTER_ROLES:
            raise ValueError(f"Role must be one of: {', '.join(SELF_REGISTER_ROLES)}")
        return v

class StaffUserCreate(UserBase):
    password: str
    role: str
    
    @validator("role")
    def known_role(cls, v):
        if v not in ALL_ROLES:
            raise ValueError(f"Unknown role: {v}")
        return v

class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None

class User(UserBase):
    id: int
    role: str
    is_active: bool
    phone_verified: bool = False
    merchant_number: Optional[int] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class AuthResponse(BaseModel):
    access_token: str
    token_type: str
    user: User
    redirect_to: str

class Token(BaseModel):
    access_token: str
    token_type: str

class OTPVerifyRequest(BaseModel):
    code: str
