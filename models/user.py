from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    age: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @property
    def label(self) -> str:
        return self.email or self.name or self.id


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    last_name: str = Field(min_length=1, alias="lastName")
    age: int = Field(ge=1)
    email: EmailStr
    password: str = Field(min_length=6)
