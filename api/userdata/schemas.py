from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional


class User(BaseModel):
    id: int
    name: str
    email: str


class CreateUserRequest(BaseModel):
    name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=320)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("Name is required.")
        return v

    @field_validator("email")
    @classmethod
    def email_looks_valid(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Email is required.")
        local, sep, domain = v.partition("@")
        if not sep or not local or not domain or " " in v:
            raise ValueError("Email must look like name@domain.")
        return v


class UserResponse(BaseModel):
    data: User
    cached: bool
    response_time: str


class CreateUserResponse(BaseModel):
    message: str
    data: User


class ClearCacheResponse(BaseModel):
    message: str
    timestamp: str


class QueueStatus(BaseModel):
    queue_length: int
    processing: int
    pending: int


class CacheStatusResponse(BaseModel):
    cache_size: int
    hits: int
    misses: int
    hit_rate: str
    evictions: int
    average_response_time: str
    queue: QueueStatus


class ErrorField(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    retry_after: Optional[int] = None
    errors: Optional[List[ErrorField]] = None


class ServiceInfo(BaseModel):
    message: str
    version: str
    endpoints: Dict[str, str]
