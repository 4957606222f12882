"""Pydantic v2 schemas for admin profile management."""

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["guardian", "student", "admin"]
AccountStatus = Literal["active", "suspended", "pending", "deactivated"]


class ExemptionRequest(BaseModel):
    exempt: bool


class RoleUpdateRequest(BaseModel):
    role: Role


class StatusUpdateRequest(BaseModel):
    status: AccountStatus


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    name: str | None
    role: str
    status: str
    subscription_exempt: bool
