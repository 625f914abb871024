from typing import Optional
from pydantic import BaseModel


class UserCreate(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None
    role_id: Optional[str] = None
    role: Optional[str] = None  # slug, used when role_id is absent


class RoleAssignment(BaseModel):
    role_id: Optional[str] = None


class ActiveUpdate(BaseModel):
    active: Optional[bool] = None


class RoleCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    slug: Optional[str] = None


class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
