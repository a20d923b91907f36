"""Pydantic model for the Problem document schema."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Problem(BaseModel):
    """Model of the RFC7807 Problem document schema.

    Extension members are allowed and kept as extra fields.
    """

    model_config = ConfigDict(extra='allow')

    type: str = 'about:blank'
    title: Optional[str] = None
    status: Optional[int] = None
    detail: Optional[str] = None
    instance: Optional[str] = None
