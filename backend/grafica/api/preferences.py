import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel

from grafica.api.deps import get_owner, get_store
from grafica.db.session import get_session
from grafica.services.dao import ClientsDAO, InksDAO, MaterialsDAO, ServicesDAO
from grafica.services.loader import refresh_collections
from grafica.services.store import AppStore

logger = logging.getLogger(__name__)
router = APIRouter()

UI_KEYS = ("locale", "currency", "theme", "sidebar_open", "current_page", "settings")


class PreferencesUpdate(BaseModel):
    locale: Optional[str] = None
    currency: Optional[str] = None
    theme: Optional[str] = None
    sidebar_open: Optional[bool] = None
    current_page: Optional[str] = None


def _ui_state(store: AppStore):
    state = store.get_state()
    return {k: state[k] for k in UI_KEYS}


@router.get("/")
def get_preferences(store: AppStore = Depends(get_store)):
    return _ui_state(store)


@router.patch("/")
def update_preferences(update: PreferencesUpdate, store: AppStore = Depends(get_store)):
    # locale first: it derives the currency, which an explicit currency then overrides
    if update.locale is not None:
        store.set_locale(update.locale)
    if update.currency is not None:
        store.set_currency(update.currency)
    if update.theme is not None:
        store.set_theme(update.theme)
    if update.sidebar_open is not None:
        store.set_sidebar_open(update.sidebar_open)
    if update.current_page is not None:
        store.set_current_page(update.current_page)
    return _ui_state(store)


@router.post("/detect")
def detect_preferences(
    accept_language: Optional[str] = Header(None),
    prefers_color_scheme: Optional[str] = Header(None, alias="Sec-CH-Prefers-Color-Scheme"),
    store: AppStore = Depends(get_store),
):
    language = (accept_language or "").split(",")[0].strip() or None
    prefers_dark = None
    if prefers_color_scheme:
        prefers_dark = prefers_color_scheme.strip('"').lower() == "dark"
    store.apply_detected_preferences(language, prefers_dark)
    return _ui_state(store)


@router.post("/refresh")
async def refresh(owner: Callable = Depends(get_owner), store: AppStore = Depends(get_store)):
    """Reload the cached collections from the database into the store."""
    session = get_session()
    try:
        errors = await refresh_collections(store, {
            "clients": ClientsDAO(session, owner).list,
            "materials": MaterialsDAO(session, owner).list,
            "inks": InksDAO(session, owner).list,
            "services": ServicesDAO(session, owner).list,
        })
    finally:
        session.close()
    state = store.get_state()
    counts = {k: len(state[k]) for k in ("clients", "materials", "inks", "services")}
    logger.info("Store refreshed counts=%s errors=%s", counts, {k: v for k, v in errors.items() if v})
    return {"counts": counts, "errors": errors}
