from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import field_validator
from sqlmodel import SQLModel, Field

from grafica.db import tables
from grafica.services.normalize import to_number, to_str


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Client(SQLModel, table=True):
    __tablename__ = tables.CLIENTS

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class ClientCreate(SQLModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class ClientUpdate(SQLModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class ClientRead(SQLModel):
    id: str
    user_id: Optional[str] = None
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return to_str(v)


class Material(SQLModel, table=True):
    __tablename__ = tables.MATERIALS

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    name: str
    # "m" (linear) or "m2" (area)
    unit: str = "m"
    cost_per_unit: float = 0.0
    created_at: datetime = Field(default_factory=utcnow)


class MaterialCreate(SQLModel):
    name: str
    unit: str = "m"
    cost_per_unit: float = 0.0


class MaterialUpdate(SQLModel):
    name: Optional[str] = None
    unit: Optional[str] = None
    cost_per_unit: Optional[float] = None


class MaterialRead(SQLModel):
    id: str
    user_id: Optional[str] = None
    name: str = ""
    unit: str = "m"
    cost_per_unit: float = 0.0
    created_at: Optional[datetime] = None

    @field_validator("cost_per_unit", mode="before")
    @classmethod
    def _cost(cls, v):
        return to_number(v)


class Ink(SQLModel, table=True):
    __tablename__ = tables.INKS

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    name: str
    cost_per_liter: float = 0.0
    created_at: datetime = Field(default_factory=utcnow)


class InkCreate(SQLModel):
    name: str
    cost_per_liter: float = 0.0


class InkUpdate(SQLModel):
    name: Optional[str] = None
    cost_per_liter: Optional[float] = None


class InkRead(SQLModel):
    id: str
    user_id: Optional[str] = None
    name: str = ""
    cost_per_liter: float = 0.0
    created_at: Optional[datetime] = None

    @field_validator("cost_per_liter", mode="before")
    @classmethod
    def _cost(cls, v):
        return to_number(v)


class Settings(SQLModel, table=True):
    __tablename__ = tables.SETTINGS

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True, unique=True)
    company_name: str = "Gráfica Digital Pro"
    default_markup: float = 40.0
    default_labor_rate: float = 60.0
    default_unit: str = "m2"
    tax_percent: float = 0.0
    currency: str = "BRL"
    theme: str = "system"


class SettingsUpdate(SQLModel):
    company_name: Optional[str] = None
    default_markup: Optional[float] = None
    default_labor_rate: Optional[float] = None
    default_unit: Optional[str] = None
    tax_percent: Optional[float] = None
    currency: Optional[str] = None
    theme: Optional[str] = None


class SettingsRead(SQLModel):
    id: Optional[str] = None
    user_id: Optional[str] = None
    company_name: str = "Gráfica Digital Pro"
    default_markup: float = 40.0
    default_labor_rate: float = 60.0
    default_unit: str = "m2"
    tax_percent: float = 0.0
    currency: str = "BRL"
    theme: str = "system"
