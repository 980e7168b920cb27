"""Process-wide application state with change notification and snapshotting.

`AppStore` is created explicitly (see `grafica.main.create_app`) and handed
to whoever needs it, so each test can build a fresh one. Every mutation goes
through `set_state`, which merges, persists the whole state and notifies all
subscribers before returning.
"""
import copy
import itertools
import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Union
from uuid import uuid4

from grafica.errors import (
    DuplicateIdentityError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    UserNotFoundError,
)
from grafica.services.auth import (
    hash_password,
    is_phone_identifier,
    normalize_email,
    normalize_phone,
    verify_password,
)
from grafica.utils.datetime import map_locale

logger = logging.getLogger(__name__)

STORAGE_KEY = "gp-app-store"
DEFAULT_STORE_PATH = os.getenv("GRAFICA_STORE_PATH", "data/gp-app-store.json")

DEFAULT_SETTINGS = {
    "company_name": "Gráfica Digital Pro",
    "default_markup": 30,
    "default_unit": "m2",
    "tax_percent": 0,
    "dashboard_cards": ["revenue", "cost", "profit", "margin", "production", "quotes"],
}

DEFAULT_STATE: Dict[str, Any] = {
    "user": None,
    "settings": DEFAULT_SETTINGS,
    "locale": "pt-BR",
    "currency": "BRL",
    "theme": "dark",
    "users": [],
    "auth": {"user_id": None},
    "clients": [],
    "materials": [],
    "inks": [],
    "services": [],
    "sidebar_open": True,
    "current_page": "dashboard",
}

State = Dict[str, Any]
Listener = Callable[[], None]


def currency_for_locale(locale: str) -> str:
    return "BRL" if locale == "pt-BR" else "USD"


def public_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Strip password material from a stored user record."""
    if user is None:
        return None
    return {k: v for k, v in user.items() if k != "pass_hash"}


class Persistence(Protocol):
    def load(self) -> Optional[State]:
        ...

    def save(self, state: State) -> None:
        ...


class MemoryPersistence:
    """Keeps the serialized snapshot in memory (same JSON round trip as the file)."""

    def __init__(self, blob: Optional[str] = None):
        self.blob = blob

    def load(self) -> Optional[State]:
        if not self.blob:
            return None
        return json.loads(self.blob)

    def save(self, state: State) -> None:
        self.blob = json.dumps(state, default=str, ensure_ascii=False)


class JsonFilePersistence:
    """One JSON document on disk holding the whole state under STORAGE_KEY."""

    def __init__(self, path: Union[str, Path] = DEFAULT_STORE_PATH, key: str = STORAGE_KEY):
        self.path = Path(path)
        self.key = key

    def load(self) -> Optional[State]:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data.get(self.key)

    def save(self, state: State) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump({self.key: state}, f, indent=2, ensure_ascii=False, default=str)
        temp_path.replace(self.path)


class AppStore:
    def __init__(
        self,
        persistence: Optional[Persistence] = None,
        on_theme_change: Optional[Callable[[bool], None]] = None,
    ):
        self.persistence = persistence
        self.on_theme_change = on_theme_change
        self._lock = threading.RLock()
        self._listeners: Dict[int, Listener] = {}
        self._ids = itertools.count()
        # mirrors the "dark" class toggled on the document root
        self.root_classes = set()
        self._state: State = self._hydrate()
        if self._state.get("theme") == "dark":
            self.root_classes.add("dark")

    # -- persistence -----------------------------------------------------

    def _hydrate(self) -> State:
        state = copy.deepcopy(DEFAULT_STATE)
        if self.persistence is None:
            return state
        try:
            stored = self.persistence.load()
        except Exception as e:
            logger.warning("Failed to load stored state: %s", e)
            return state
        if isinstance(stored, dict):
            state.update(stored)
            logger.debug("State hydrated from snapshot (%d keys)", len(stored))
        return state

    def _save(self) -> None:
        if self.persistence is None:
            return
        try:
            self.persistence.save(self._state)
        except Exception as e:
            logger.warning("Failed to save state snapshot: %s", e)

    # -- core API ----------------------------------------------------------

    def get_state(self) -> State:
        with self._lock:
            return dict(self._state)

    def set_state(self, patch: Union[State, Callable[[State], State]]) -> None:
        with self._lock:
            update = patch(dict(self._state)) if callable(patch) else patch
            self._state = {**self._state, **(update or {})}
            self._save()
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener()
            except Exception:
                logger.exception("State listener %r failed", listener)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            token = next(self._ids)
            self._listeners[token] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return unsubscribe

    def select(self, selector: Callable[[State], Any], callback: Callable[[Any], None]) -> Callable[[], None]:
        """Subscribe to a projection; `callback(selector(state))` runs on every change."""
        return self.subscribe(lambda: callback(selector(self.get_state())))

    # -- domain actions ------------------------------------------------------

    def set_user(self, user: Optional[Dict[str, Any]]) -> None:
        self.set_state({"user": user})

    def patch_settings(self, new_settings: Dict[str, Any]) -> None:
        self.set_state(lambda s: {"settings": {**s["settings"], **new_settings}})

    def set_clients(self, clients: List[Dict[str, Any]]) -> None:
        self.set_state({"clients": list(clients)})

    def set_materials(self, materials: List[Dict[str, Any]]) -> None:
        self.set_state({"materials": list(materials)})

    def set_inks(self, inks: List[Dict[str, Any]]) -> None:
        self.set_state({"inks": list(inks)})

    def set_services(self, services: List[Dict[str, Any]]) -> None:
        self.set_state({"services": list(services)})

    def set_locale(self, locale: str) -> None:
        self.set_state({"locale": locale, "currency": currency_for_locale(locale)})

    def set_currency(self, currency: str) -> None:
        self.set_state({"currency": currency})

    def set_theme(self, theme: str) -> None:
        is_dark = theme == "dark"
        with self._lock:
            # root class first so listeners notified by set_state see it
            if is_dark:
                self.root_classes.add("dark")
            else:
                self.root_classes.discard("dark")
            self.set_state({"theme": theme})
        if self.on_theme_change is not None:
            self.on_theme_change(is_dark)

    def set_sidebar_open(self, open_: bool) -> None:
        self.set_state({"sidebar_open": bool(open_)})

    def set_current_page(self, page: str) -> None:
        self.set_state({"current_page": page})

    def apply_detected_preferences(self, language: Optional[str] = None, prefers_dark: Optional[bool] = None) -> None:
        """Adopt the client's language unless the user already moved off the default."""
        if language:
            detected = map_locale(language)
            if self.get_state()["locale"] == "pt-BR" and detected != "pt-BR":
                self.set_locale(detected)
        if prefers_dark is not None:
            self.set_theme("dark" if prefers_dark else "light")

    # -- local auth ------------------------------------------------------------

    def register_user(self, name: str, email: str, phone: str, password: str,
                      sign_in: bool = True) -> Dict[str, Any]:
        """Add a local user; `sign_in=False` leaves the session pointer alone."""
        email = normalize_email(email)
        phone = normalize_phone(phone)

        # check and append under one lock so concurrent sign-ups cannot both pass
        with self._lock:
            users = self._state["users"]
            if any(u.get("email") == email for u in users):
                raise DuplicateIdentityError("email")
            if any(u.get("phone") == phone for u in users):
                raise DuplicateIdentityError("phone")

            user = {
                "id": uuid4().hex,
                "name": (name or "").strip(),
                "email": email,
                "phone": phone,
                "pass_hash": hash_password(password),
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            patch: State = {"users": [*users, user]}
            if sign_in:
                patch["auth"] = {"user_id": user["id"]}
            self.set_state(patch)
        logger.info("Registered user id=%s", user["id"])
        return user

    def find_user(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        return next((u for u in self.get_state()["users"] if u.get("id") == user_id), None)

    def authenticate(self, ident: str, password: str) -> Dict[str, Any]:
        """Check credentials without touching the session pointer."""
        ident = (ident or "").strip().lower()
        with self._lock:
            users = self._state["users"]
            if is_phone_identifier(ident):
                phone = normalize_phone(ident)
                user = next((u for u in users if u.get("phone") == phone), None)
            else:
                user = next((u for u in users if u.get("email") == ident), None)

        if user is None:
            raise UserNotFoundError()
        if not verify_password(password or "", user.get("pass_hash", "")):
            logger.warning("Rejected login for user id=%s", user.get("id"))
            raise InvalidCredentialsError()
        return user

    def login(self, ident: str, password: str) -> Dict[str, Any]:
        with self._lock:
            user = self.authenticate(ident, password)
            self.set_state({"auth": {"user_id": user["id"]}})
        logger.info("User id=%s logged in", user["id"])
        return user

    def logout(self) -> None:
        self.set_state({"auth": {"user_id": None}})

    def get_current_user(self) -> Optional[Dict[str, Any]]:
        return self.find_user(self.current_user_id())

    def current_user_id(self) -> Optional[str]:
        return (self.get_state().get("auth") or {}).get("user_id")

    def require_user_id(self) -> str:
        user_id = self.current_user_id()
        if not user_id:
            raise NotAuthenticatedError()
        return user_id
