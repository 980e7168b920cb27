from functools import partial
from typing import Any, Callable, Dict, Optional

from fastapi import Request

from grafica.errors import NotAuthenticatedError, ValidationFailed
from grafica.services.store import AppStore

SESSION_USER_KEY = "user_id"


def get_store(request: Request) -> AppStore:
    return request.app.state.store


def session_user_id(request: Request) -> Optional[str]:
    """The signed-in user for this client's session cookie, if it still exists."""
    user_id = request.session.get(SESSION_USER_KEY)
    if user_id and get_store(request).find_user(user_id) is not None:
        return user_id
    return None


def get_owner(request: Request) -> Callable[[], Optional[str]]:
    # DAOs take a provider, bound here to the calling client's session
    return partial(session_user_id, request)


def require_user(request: Request) -> str:
    user_id = session_user_id(request)
    if not user_id:
        raise NotAuthenticatedError()
    return user_id


def sign_in(request: Request, user: Dict[str, Any]) -> None:
    request.session[SESSION_USER_KEY] = user["id"]


def sign_out(request: Request) -> None:
    request.session.clear()


def ensure_valid(result: Dict[str, Any]) -> None:
    if not result["valid"]:
        raise ValidationFailed(result["issues"])
