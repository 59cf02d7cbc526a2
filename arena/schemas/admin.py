"""Admin configuration schemas."""
from pydantic import BaseModel
from typing import Any, Optional


class ConfigResponse(BaseModel):
    policy_version: int
    values: dict[str, Any]


class UpdateConfigRequest(BaseModel):
    key: str
    value: Any


class UpdateConfigResponse(BaseModel):
    success: bool
    key: str
    value: Any
    policy_version: int
    message: Optional[str] = None
