import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from grafica.api.deps import ensure_valid, get_store, require_user, sign_in, sign_out
from grafica.services.store import AppStore, public_user
from grafica.services.validation import Validator

logger = logging.getLogger(__name__)
router = APIRouter()


class RegisterRequest(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    # e-mail or phone number
    ident: str = ""
    password: str = ""


@router.post("/register", status_code=201)
def register(req: RegisterRequest, request: Request, store: AppStore = Depends(get_store)):
    ensure_valid(Validator().validate_registration(req.model_dump()))
    user = store.register_user(req.name, req.email, req.phone, req.password, sign_in=False)
    sign_in(request, user)
    return public_user(user)


@router.post("/login")
def login(req: LoginRequest, request: Request, store: AppStore = Depends(get_store)):
    ensure_valid(Validator().validate_login(req.model_dump()))
    user = store.authenticate(req.ident, req.password)
    sign_in(request, user)
    logger.info("User id=%s logged in", user["id"])
    return public_user(user)


@router.post("/logout")
def logout(request: Request):
    sign_out(request)
    return {"ok": True}


@router.get("/me")
def me(user_id: str = Depends(require_user), store: AppStore = Depends(get_store)):
    return public_user(store.find_user(user_id))
