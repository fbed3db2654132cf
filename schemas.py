# schemas.py
"""Request bodies accepted by the JSON API."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.user import Role


class _Input(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoleSelection(_Input):
    role: Role


class UpdateBusStatus(_Input):
    # drivers can only start or stop; Signal Lost is set by the server
    status: Literal["Running", "Stopped"]


class EspData(_Input):
    lat             : Optional[float] = Field(default=None, ge=-90, le=90)
    lng             : Optional[float] = Field(default=None, ge=-180, le=180)
    passenger_count : Optional[int]   = None      # clamped by the store
    timestamp       : Optional[datetime] = None
