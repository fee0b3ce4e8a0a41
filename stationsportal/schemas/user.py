from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class UserCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)
    role: str = "station_manager"
    org_unit_id: Optional[int] = None
    station_ids: List[int] = []

class UserResponse(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str]
    role: str
    org_unit_id: Optional[int]
    is_active: bool

    model_config = {"from_attributes": True}

class UserSummary(BaseModel):
    id: int
    full_name: Optional[str]
    email: str

    model_config = {"from_attributes": True}

class UserListResponse(BaseModel):
    users: List[UserResponse]

class UserEnvelope(BaseModel):
    user: UserResponse

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    user: UserResponse
