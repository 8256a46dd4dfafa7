"""
Company Schemas
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class CompanySettingsResponse(BaseModel):
    id: int
    name: str
    currency: str
    nudge_cooldown_hours: Optional[int] = None
    effective_nudge_cooldown_hours: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CompanySettingsUpdate(BaseModel):
    """Founder-editable company settings; omitted fields are left alone"""
    name: Optional[str] = Field(None, max_length=100)
    currency: Optional[str] = None
    nudge_cooldown_hours: Optional[int] = None
