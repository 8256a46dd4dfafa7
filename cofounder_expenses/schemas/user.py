"""
User Schemas
Pydantic models for user-related requests and responses
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime

from cofounder_expenses.models.user import UserRole


class UserBase(BaseModel):
    """Base user schema with common fields"""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)


class SignupRequest(UserBase):
    """Create a company together with its first founder"""
    password: str = Field(..., min_length=8, max_length=100)
    company_name: str = Field(..., min_length=1, max_length=100)
    currency: str = "USD"


class MemberCreate(UserBase):
    """Schema for a founder adding someone to the company"""
    password: str = Field(..., min_length=8, max_length=100)
    role: UserRole = UserRole.MEMBER


class RoleUpdate(BaseModel):
    role: UserRole


class UserResponse(UserBase):
    """Schema for user response"""
    id: int
    company_id: int
    role: UserRole
    avatar_initials: str
    created_at: datetime
    last_login: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile"""
    name: str = Field(..., min_length=1, max_length=100)


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)
