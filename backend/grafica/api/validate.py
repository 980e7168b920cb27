from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Any, Dict

from grafica.services.validation import Validator

router = APIRouter()

FORMS = {
    "client": "validate_client",
    "material": "validate_material",
    "ink": "validate_ink",
    "service": "validate_service",
    "registration": "validate_registration",
    "login": "validate_login",
}


class ValidateRequest(BaseModel):
    data: Dict[str, Any]


@router.post("/{form}")
async def validate_form(form: str, req: ValidateRequest):
    if form not in FORMS:
        raise HTTPException(status_code=404, detail=f"unknown form: {form}")
    v = Validator()
    return getattr(v, FORMS[form])(req.data)
