"""Pydantic models for per-number lookup outcomes."""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..constants import NOT_AVAILABLE

Registration = Union[bool, Literal["error"]]


class LookupResult(BaseModel):
    """Outcome of checking one phone number. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    phone_number: str
    is_registered: Registration = False
    name: str = NOT_AVAILABLE
    profile_pic_url: Optional[str] = None  # error text when is_registered == "error"
    profile_pic_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.is_registered == "error"

    @property
    def counts_as_success(self) -> bool:
        # "error" and False both count as failed
        return self.is_registered is True
