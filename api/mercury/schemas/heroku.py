"""Pydantic schemas for the subset of Heroku webhook payloads we consume.

Heroku documents an example request at
https://devcenter.heroku.com/articles/app-webhooks#receiving-webhooks
Extra keys are ignored; only fields used to render a message are declared.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class AppData(BaseModel):
    name: str = Field(..., min_length=1)


class DynoData(BaseModel):
    app: AppData
    name: str = Field(..., min_length=1)
    type: str
    state: str
    # Absent or null for most non-crash dyno events
    exit_status: Optional[int] = None


class ReleaseData(BaseModel):
    app: AppData
    description: str


class DynoHook(BaseModel):
    resource: Literal["dyno"]
    action: str
    created_at: datetime
    data: DynoData


class ReleaseHook(BaseModel):
    resource: Literal["release"]
    action: str
    created_at: datetime
    data: ReleaseData
