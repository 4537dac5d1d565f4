"""Pydantic schemas for users.

Learn: UserCreate is the validation step for new records: formats,
normalization (trim, lowercase email), and the role/status rule, which
depends on two fields and so lives in a model validator rather than a
field default. UserRead is the public projection: no password, no
reset or two-factor secrets.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from accessgate.db.models import Role

# ASCII digits only
PHONE_PATTERN = r"^[0-9]{8,15}$"
DNI_PATTERN = r"^[0-9]{7,9}$"
EMAIL_PATTERN = r"^.+@.+\..+$"


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., pattern=PHONE_PATTERN)
    username: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)
    dni: str = Field(..., pattern=DNI_PATTERN)
    date_of_birth: date
    role: Role = Role.USER
    status: Optional[bool] = None

    @field_validator("username", "dni", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def apply_status_rule(self):
        """Employees get status=True unless given; other roles get none."""
        if self.role == Role.EMPLOYEE:
            if self.status is None:
                self.status = True
        elif self.status is not None:
            raise ValueError("status only applies to the employee role")
        return self


class UserRead(BaseModel):
    id: uuid.UUID
    name: str
    last_name: str
    phone_number: str
    username: str
    email: str
    dni: str
    date_of_birth: date
    role: Role
    status: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
