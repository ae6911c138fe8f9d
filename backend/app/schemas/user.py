from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from app.models.user import UserRole


class UserCreate(BaseModel):
    """Account created by an administrator, with its role"""
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    username: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    department_id: Optional[str] = Field(None, max_length=36)
    client_id: Optional[str] = Field(None, max_length=36)


class UserUpdate(BaseModel):
    role: Optional[UserRole] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    department_id: Optional[str] = Field(None, max_length=36)
    client_id: Optional[str] = Field(None, max_length=36)
