"""
Authentication schemas.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import List, Literal, Optional
from datetime import datetime

UserRole = Literal["farmer", "student", "paravet", "vet", "admin"]


class VetProfileIn(BaseModel):
    specialties: List[str] = Field(default_factory=list)
    clinic_name: Optional[str] = None
    practice_id: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=2000)


class UserRegister(BaseModel):
    email: EmailStr
    password: str
    full_name: str = Field(..., min_length=1, max_length=120)
    role: UserRole = "farmer"
    vet_profile: Optional[VetProfileIn] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class VerifyEmail(BaseModel):
    email: EmailStr
    code: str


class ResendCode(BaseModel):
    email: EmailStr


class ForgotPassword(BaseModel):
    email: EmailStr


class ResetPassword(BaseModel):
    email: EmailStr
    code: str
    new_password: str


class ChangePassword(BaseModel):
    current_password: str
    new_password: str


class VetProfileOut(BaseModel):
    specialties: List[str] = Field(default_factory=list)
    clinic_name: Optional[str] = None
    practice_id: Optional[str] = None
    bio: Optional[str] = None
    rating: Optional[float] = None

    class Config:
        from_attributes = True


class UserInfo(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    is_active: bool
    profile_image_url: Optional[str] = None


class UserProfile(UserInfo):
    """Extended user info with timestamps and the vet sub-profile."""
    onboarding_complete: bool = False
    vet_profile: Optional[VetProfileOut] = None
    created_at: datetime
    updated_at: datetime


class LoginResponse(BaseModel):
    message: str
    access_token: str
    token_type: str = "bearer"
    user: UserInfo


class MessageResponse(BaseModel):
    message: str
