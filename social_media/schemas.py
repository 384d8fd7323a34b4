from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# SQLite INTEGER range; larger values cannot be bound by the driver
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _require_encodable(v: str) -> str:
    # lone surrogates are valid JSON but cannot be stored or compared
    try:
        v.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("must be encodable as UTF-8")
    return v


# Request bodies carry no length rules; the services own validation so
# that a bad value becomes a 400 rather than a framework 422.


class AccountCredentials(BaseModel):
    username: str = ""
    password: str = ""

    @field_validator("username", "password")
    @classmethod
    def validate_encodable(cls, v: str) -> str:
        return _require_encodable(v)


class Account(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: int
    username: str
    password: str


class MessageCreate(BaseModel):
    posted_by: int = Field(ge=INT64_MIN, le=INT64_MAX)
    message_text: str = ""
    time_posted_epoch: Optional[int] = Field(default=None, ge=INT64_MIN, le=INT64_MAX)

    @field_validator("message_text")
    @classmethod
    def validate_encodable(cls, v: str) -> str:
        return _require_encodable(v)


class MessageTextUpdate(BaseModel):
    message_text: str = ""

    @field_validator("message_text")
    @classmethod
    def validate_encodable(cls, v: str) -> str:
        return _require_encodable(v)


class Message(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message_id: int
    posted_by: int
    message_text: str
    time_posted_epoch: Optional[int] = None
