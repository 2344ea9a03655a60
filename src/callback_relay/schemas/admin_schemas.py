from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AdminAction(str, Enum):
    CLEANUP       = "cleanup"
    CLEAR         = "clear"
    MARK_CONSUMED = "mark-consumed"


class AdminRequest(BaseModel):
    action: AdminAction = Field(..., description="Operational action to run")
    code: Optional[str] = Field(default=None, description="Transaction code the action applies to")
