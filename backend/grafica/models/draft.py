from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from grafica.services.normalize import to_list, to_number, to_optional_number, to_str

DEFAULT_MARKUP = 40.0


class MaterialLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    material_id: Optional[str] = None
    unit: str = "m"
    quantity: float = 1.0
    meters: float = 0.0
    width: float = 0.0
    height: float = 0.0
    unit_cost_snapshot: Optional[float] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, v: Any) -> float:
        return to_number(v, default=1.0)

    @field_validator("meters", "width", "height", mode="before")
    @classmethod
    def _dimension(cls, v: Any) -> float:
        return to_number(v)

    @field_validator("unit_cost_snapshot", mode="before")
    @classmethod
    def _snapshot(cls, v: Any) -> Optional[float]:
        return to_optional_number(v)

    @field_validator("unit", mode="before")
    @classmethod
    def _unit(cls, v: Any) -> str:
        return to_str(v)


class InkLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ink_id: Optional[str] = None
    ml_used: float = Field(0.0, validation_alias=AliasChoices("ml_used", "ml"))
    cost_per_liter_snapshot: Optional[float] = None

    @field_validator("ml_used", mode="before")
    @classmethod
    def _ml(cls, v: Any) -> float:
        return to_number(v)

    @field_validator("cost_per_liter_snapshot", mode="before")
    @classmethod
    def _snapshot(cls, v: Any) -> Optional[float]:
        return to_optional_number(v)


class LaborLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hours: float = 0.0
    hourly_rate: float = 0.0

    @field_validator("hours", "hourly_rate", mode="before")
    @classmethod
    def _num(cls, v: Any) -> float:
        return to_number(v)


class Adjustment(BaseModel):
    """A flat extra (added to cost) or discount (subtracted from cost)."""

    model_config = ConfigDict(from_attributes=True)

    description: str = ""
    value: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _from_number(cls, data: Any) -> Any:
        if isinstance(data, (int, float, str)) and not isinstance(data, bool):
            return {"description": "", "value": data}
        return data

    @field_validator("value", mode="before")
    @classmethod
    def _value(cls, v: Any) -> float:
        return to_number(v)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v: Any) -> str:
        return to_str(v)


class ServiceDraft(BaseModel):
    """Everything the pricing engine needs to quote one service order."""

    model_config = ConfigDict(from_attributes=True)

    items: List[MaterialLine] = Field(default_factory=list)
    inks: List[InkLine] = Field(default_factory=list)
    labor: List[LaborLine] = Field(default_factory=list)
    extras: List[Adjustment] = Field(default_factory=list)
    discounts: List[Adjustment] = Field(default_factory=list)
    markup: float = DEFAULT_MARKUP
    manual_price: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _header_labor(cls, data: Any) -> Any:
        # order headers carry a single labor line as labor_hours/labor_rate
        if isinstance(data, dict) and "labor" not in data and (
            "labor_hours" in data or "labor_rate" in data
        ):
            data = dict(data)
            data["labor"] = [{"hours": data.get("labor_hours"), "hourly_rate": data.get("labor_rate")}]
        return data

    @field_validator("items", "inks", "labor", "extras", "discounts", mode="before")
    @classmethod
    def _lists(cls, v: Any) -> List[Any]:
        return [x for x in to_list(v) if x is not None]

    @field_validator("markup", mode="before")
    @classmethod
    def _markup(cls, v: Any) -> float:
        return to_number(v, default=DEFAULT_MARKUP)

    @field_validator("manual_price", mode="before")
    @classmethod
    def _manual(cls, v: Any) -> Optional[float]:
        return to_optional_number(v)


class ServiceTotals(BaseModel):
    total_cost: float = 0.0
    price: float = 0.0
    profit: float = 0.0
    margin: float = 0.0

