"""
Category Schemas
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional

from cofounder_expenses.config.categories import CATEGORY_ICONS, DEFAULT_ICON


def _valid_icon(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in CATEGORY_ICONS:
        raise ValueError("Invalid icon")
    return v


def _required_label(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        raise ValueError("Label is required")
    return v


class CategoryCreate(BaseModel):
    """A founder-defined category; the value is derived from the label when omitted"""
    label: str = Field(..., max_length=50)
    icon: str = DEFAULT_ICON
    value: Optional[str] = Field(None, max_length=50)

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        return _required_label(v)

    @field_validator("icon")
    @classmethod
    def validate_icon(cls, v: str) -> str:
        return _valid_icon(v)


class CategoryUpdate(BaseModel):
    label: Optional[str] = Field(None, max_length=50)
    icon: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = Field(None, ge=0)

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: Optional[str]) -> Optional[str]:
        return _required_label(v)

    @field_validator("icon")
    @classmethod
    def validate_icon(cls, v: Optional[str]) -> Optional[str]:
        return _valid_icon(v)


class CategoryResponse(BaseModel):
    id: int
    value: str
    label: str
    icon: str
    is_default: bool
    is_active: bool
    sort_order: int

    model_config = ConfigDict(from_attributes=True)
