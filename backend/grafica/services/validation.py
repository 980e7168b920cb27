from typing import Dict, Any, List

from grafica.models.service import STATUSES
from grafica.services.auth import is_valid_email, is_valid_password, is_valid_phone
from grafica.services.normalize import is_number, to_list, to_number

SUPPORTED_UNITS = {"m", "m2"}


class Validator:
    """Form validation run before anything reaches the pricing engine or the DAL.

    Rules:
    - required text fields must be non-blank -> missing_<field>
    - numeric fields must parse -> invalid_number:<field>
    - costs, hours, rates and markup must not be negative -> negative_value:<field>
    - line items need a supported unit and the dimensions that unit uses
    - registration needs a valid email, a 10-12 digit phone and a 6+ char password

    Deterministic: issues are returned sorted and without duplicates.
    """

    def _add_issue(self, issues: List[str], issue: str) -> None:
        if issue not in issues:
            issues.append(issue)

    def _result(self, issues: List[str]) -> Dict[str, Any]:
        return {"valid": not issues, "issues": sorted(issues)}

    def _required(self, issues: List[str], data: Dict[str, Any], name: str) -> None:
        value = data.get(name)
        if value is None or not str(value).strip():
            self._add_issue(issues, f"missing_{name}")

    def _number(self, issues: List[str], value: Any, label: str, required: bool = False) -> None:
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                self._add_issue(issues, f"missing_{label}")
            return
        if not is_number(value):
            self._add_issue(issues, f"invalid_number:{label}")
            return
        if to_number(value) < 0:
            self._add_issue(issues, f"negative_value:{label}")

    # -- catalog -----------------------------------------------------------

    def validate_client(self, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        issues: List[str] = []
        if not partial or "name" in data:
            self._required(issues, data, "name")
        email = data.get("email")
        if email and not is_valid_email(email):
            self._add_issue(issues, "invalid_email")
        return self._result(issues)

    def validate_material(self, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        issues: List[str] = []
        if not partial or "name" in data:
            self._required(issues, data, "name")
        if not partial or "unit" in data:
            if data.get("unit", "m") not in SUPPORTED_UNITS:
                self._add_issue(issues, "invalid_unit")
        if not partial or "cost_per_unit" in data:
            self._number(issues, data.get("cost_per_unit"), "cost_per_unit", required=not partial)
        return self._result(issues)

    def validate_ink(self, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        issues: List[str] = []
        if not partial or "name" in data:
            self._required(issues, data, "name")
        if not partial or "cost_per_liter" in data:
            self._number(issues, data.get("cost_per_liter"), "cost_per_liter", required=not partial)
        return self._result(issues)

    # -- service orders ----------------------------------------------------

    def validate_service(self, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        issues: List[str] = []
        if not partial or "name" in data:
            self._required(issues, data, "name")

        status = data.get("status")
        if status and status not in STATUSES:
            self._add_issue(issues, "invalid_status")

        for key in ("labor_hours", "labor_rate", "markup"):
            self._number(issues, data.get(key), key)
        self._number(issues, data.get("manual_price"), "manual_price")

        for idx, item in enumerate(to_list(data.get("items"))):
            label = f"items[{idx}]"
            if not isinstance(item, dict):
                self._add_issue(issues, f"invalid_item:{label}")
                continue
            unit = item.get("unit")
            if unit not in SUPPORTED_UNITS:
                self._add_issue(issues, f"invalid_unit:{label}")
            self._number(issues, item.get("quantity"), f"{label}.quantity")
            self._number(issues, item.get("unit_cost_snapshot"), f"{label}.unit_cost_snapshot")
            if unit == "m":
                self._number(issues, item.get("meters"), f"{label}.meters", required=True)
            elif unit == "m2":
                self._number(issues, item.get("width"), f"{label}.width", required=True)
                self._number(issues, item.get("height"), f"{label}.height", required=True)

        for idx, ink in enumerate(to_list(data.get("inks"))):
            label = f"inks[{idx}]"
            if not isinstance(ink, dict):
                self._add_issue(issues, f"invalid_item:{label}")
                continue
            self._number(issues, ink.get("ml", ink.get("ml_used")), f"{label}.ml", required=True)
            self._number(issues, ink.get("cost_per_liter_snapshot"), f"{label}.cost_per_liter_snapshot")

        for key in ("extras", "discounts"):
            for idx, adj in enumerate(to_list(data.get(key))):
                value = adj.get("value") if isinstance(adj, dict) else adj
                self._number(issues, value, f"{key}[{idx}].value", required=True)

        return self._result(issues)

    # -- auth ----------------------------------------------------------------

    def validate_registration(self, data: Dict[str, Any]) -> Dict[str, Any]:
        issues: List[str] = []
        self._required(issues, data, "name")
        if not is_valid_email(data.get("email") or ""):
            self._add_issue(issues, "invalid_email")
        if not is_valid_phone(data.get("phone") or ""):
            self._add_issue(issues, "invalid_phone")
        if not is_valid_password(data.get("password") or ""):
            self._add_issue(issues, "weak_password")
        return self._result(issues)

    def validate_login(self, data: Dict[str, Any]) -> Dict[str, Any]:
        issues: List[str] = []
        self._required(issues, data, "ident")
        self._required(issues, data, "password")
        return self._result(issues)
