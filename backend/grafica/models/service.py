from datetime import datetime
from typing import List, Optional

from pydantic import field_validator
from sqlmodel import SQLModel, Field, Relationship

from grafica.db import tables
from grafica.models.catalog import Client, ClientRead, new_id, utcnow
from grafica.services.normalize import to_number, to_optional_number, to_str

STATUS_QUOTE = "Orçamento"
STATUS_APPROVED = "Aprovado"
STATUS_IN_PRODUCTION = "Em produção"
STATUS_DONE = "Concluído"
STATUS_CANCELLED = "Cancelado"
STATUSES = (STATUS_QUOTE, STATUS_APPROVED, STATUS_IN_PRODUCTION, STATUS_DONE, STATUS_CANCELLED)

DEFAULT_LABOR_RATE = 60.0
DEFAULT_MARKUP = 40.0

_CHILD = {"cascade": "all, delete-orphan"}


class ServiceOrder(SQLModel, table=True):
    __tablename__ = tables.SERVICE_ORDERS

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    client_id: Optional[str] = Field(default=None, foreign_key=f"{tables.CLIENTS}.id")
    name: str
    status: str = STATUS_QUOTE
    due_date: Optional[datetime] = None
    labor_hours: float = 0.0
    labor_rate: float = DEFAULT_LABOR_RATE
    markup: float = DEFAULT_MARKUP
    manual_price: Optional[float] = None
    # totals are persisted together with the draft at save time
    total_cost: float = 0.0
    price: float = 0.0
    profit: float = 0.0
    margin: float = 0.0
    created_at: datetime = Field(default_factory=utcnow)

    client: Optional[Client] = Relationship()
    items: List["ServiceItem"] = Relationship(back_populates="service", sa_relationship_kwargs=_CHILD)
    inks: List["ServiceInk"] = Relationship(back_populates="service", sa_relationship_kwargs=_CHILD)
    extras: List["ServiceExtra"] = Relationship(back_populates="service", sa_relationship_kwargs=_CHILD)
    discounts: List["ServiceDiscount"] = Relationship(back_populates="service", sa_relationship_kwargs=_CHILD)
    payments: List["ServicePayment"] = Relationship(back_populates="service", sa_relationship_kwargs=_CHILD)
    comments: List["ServiceComment"] = Relationship(back_populates="service", sa_relationship_kwargs=_CHILD)


class ServiceItem(SQLModel, table=True):
    __tablename__ = tables.SERVICE_ITEMS

    id: str = Field(default_factory=new_id, primary_key=True)
    service_id: str = Field(foreign_key=f"{tables.SERVICE_ORDERS}.id", index=True)
    material_id: Optional[str] = None
    unit: str = "m"
    quantity: float = 1.0
    meters: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    unit_cost_snapshot: float = 0.0

    service: Optional[ServiceOrder] = Relationship(back_populates="items")


class ServiceInk(SQLModel, table=True):
    __tablename__ = tables.SERVICE_INKS

    id: str = Field(default_factory=new_id, primary_key=True)
    service_id: str = Field(foreign_key=f"{tables.SERVICE_ORDERS}.id", index=True)
    ink_id: Optional[str] = None
    ml: float = 0.0
    cost_per_liter_snapshot: float = 0.0

    service: Optional[ServiceOrder] = Relationship(back_populates="inks")


class ServiceExtra(SQLModel, table=True):
    __tablename__ = tables.SERVICE_EXTRAS

    id: str = Field(default_factory=new_id, primary_key=True)
    service_id: str = Field(foreign_key=f"{tables.SERVICE_ORDERS}.id", index=True)
    description: str = ""
    value: float = 0.0

    service: Optional[ServiceOrder] = Relationship(back_populates="extras")


class ServiceDiscount(SQLModel, table=True):
    __tablename__ = tables.SERVICE_DISCOUNTS

    id: str = Field(default_factory=new_id, primary_key=True)
    service_id: str = Field(foreign_key=f"{tables.SERVICE_ORDERS}.id", index=True)
    description: str = ""
    value: float = 0.0

    service: Optional[ServiceOrder] = Relationship(back_populates="discounts")


class ServicePayment(SQLModel, table=True):
    __tablename__ = tables.SERVICE_PAYMENTS

    id: str = Field(default_factory=new_id, primary_key=True)
    service_id: str = Field(foreign_key=f"{tables.SERVICE_ORDERS}.id", index=True)
    amount: float = 0.0
    method: Optional[str] = None
    paid_at: datetime = Field(default_factory=utcnow)

    service: Optional[ServiceOrder] = Relationship(back_populates="payments")


class ServiceComment(SQLModel, table=True):
    __tablename__ = tables.SERVICE_COMMENTS

    id: str = Field(default_factory=new_id, primary_key=True)
    service_id: str = Field(foreign_key=f"{tables.SERVICE_ORDERS}.id", index=True)
    body: str = ""
    created_at: datetime = Field(default_factory=utcnow)

    service: Optional[ServiceOrder] = Relationship(back_populates="comments")


# Read schemas: every service row leaving the data access layer goes through these.

class ServiceItemRead(SQLModel):
    id: Optional[str] = None
    material_id: Optional[str] = None
    unit: str = "m"
    quantity: float = 1.0
    meters: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    unit_cost_snapshot: float = 0.0

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, v):
        return to_number(v, default=1.0)

    @field_validator("meters", "width", "height", mode="before")
    @classmethod
    def _dims(cls, v):
        return to_optional_number(v)

    @field_validator("unit_cost_snapshot", mode="before")
    @classmethod
    def _snapshot(cls, v):
        return to_number(v)


class ServiceInkRead(SQLModel):
    id: Optional[str] = None
    ink_id: Optional[str] = None
    ml: float = 0.0
    cost_per_liter_snapshot: float = 0.0

    @field_validator("ml", "cost_per_liter_snapshot", mode="before")
    @classmethod
    def _num(cls, v):
        return to_number(v)


class AdjustmentRead(SQLModel):
    id: Optional[str] = None
    description: str = ""
    value: float = 0.0

    @field_validator("value", mode="before")
    @classmethod
    def _value(cls, v):
        return to_number(v)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v):
        return to_str(v)


class PaymentRead(SQLModel):
    id: Optional[str] = None
    amount: float = 0.0
    method: Optional[str] = None
    paid_at: Optional[datetime] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v):
        return to_number(v)


class CommentRead(SQLModel):
    id: Optional[str] = None
    body: str = ""
    created_at: Optional[datetime] = None


class ServiceOrderRead(SQLModel):
    id: str
    user_id: Optional[str] = None
    client_id: Optional[str] = None
    name: str = ""
    status: str = STATUS_QUOTE
    due_date: Optional[datetime] = None
    labor_hours: float = 0.0
    labor_rate: float = DEFAULT_LABOR_RATE
    markup: float = DEFAULT_MARKUP
    manual_price: Optional[float] = None
    total_cost: float = 0.0
    price: float = 0.0
    profit: float = 0.0
    margin: float = 0.0
    created_at: Optional[datetime] = None
    client: Optional[ClientRead] = None
    items: List[ServiceItemRead] = []
    inks: List[ServiceInkRead] = []
    extras: List[AdjustmentRead] = []
    discounts: List[AdjustmentRead] = []
    payments: List[PaymentRead] = []
    comments: List[CommentRead] = []

    @field_validator("labor_hours", "total_cost", "price", "profit", "margin", mode="before")
    @classmethod
    def _num(cls, v):
        return to_number(v)

    @field_validator("labor_rate", mode="before")
    @classmethod
    def _labor_rate(cls, v):
        return to_number(v, default=DEFAULT_LABOR_RATE)

    @field_validator("markup", mode="before")
    @classmethod
    def _markup(cls, v):
        return to_number(v, default=DEFAULT_MARKUP)

    @field_validator("manual_price", mode="before")
    @classmethod
    def _manual(cls, v):
        return to_optional_number(v)

    @field_validator("items", "inks", "extras", "discounts", "payments", "comments", mode="before")
    @classmethod
    def _lists(cls, v):
        return list(v or [])


class PaymentCreate(SQLModel):
    amount: float
    method: Optional[str] = None
    paid_at: Optional[datetime] = None


class CommentCreate(SQLModel):
    body: str
