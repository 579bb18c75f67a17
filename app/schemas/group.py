from datetime import datetime

from pydantic import BaseModel, Field


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    year: int = Field(ge=1, le=4)
    section: str = Field(min_length=1, max_length=10)
    subject: str | None = Field(default=None, max_length=100)
    description: str | None = None
    password: str | None = Field(default=None, max_length=72)
    max_members: int = Field(default=100, ge=2, le=1000)


class GroupUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None


class GroupJoin(BaseModel):
    password: str | None = None


class GroupPasswordUpdate(BaseModel):
    password: str | None = Field(default=None, max_length=72)


class GroupRead(BaseModel):
    id: str
    name: str
    description: str | None
    year: int
    section: str
    subject: str | None
    member_count: int
    max_members: int
    is_password_protected: bool
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class MemberRead(BaseModel):
    user_id: str
    role: str
    joined_at: datetime

    model_config = {"from_attributes": True}
