# models/user.py
from __future__ import annotations

from enum import Enum

from pydantic import Field

from models.base import CamelModel


class Role(str, Enum):
    PASSENGER = "passenger"
    DRIVER    = "driver"
    ADMIN     = "admin"


class User(CamelModel):
    id       : int
    role     : Role
    name     : str
    username : str = Field(default="", exclude=True)
    password : str = Field(default="", exclude=True)
