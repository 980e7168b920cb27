from typing import Callable

from fastapi import APIRouter, Depends

from grafica.api.deps import get_owner, get_store
from grafica.db.session import get_session
from grafica.models.catalog import SettingsUpdate
from grafica.services.dao import SettingsDAO
from grafica.services.store import AppStore

router = APIRouter()


@router.get("/")
def get_settings(owner: Callable = Depends(get_owner)):
    session = get_session()
    try:
        return SettingsDAO(session, owner).get()
    finally:
        session.close()


@router.put("/")
def save_settings(update: SettingsUpdate, owner: Callable = Depends(get_owner),
                  store: AppStore = Depends(get_store)):
    patch = update.model_dump(exclude_none=True)
    session = get_session()
    try:
        saved = SettingsDAO(session, owner).upsert(patch)
    finally:
        session.close()
    # keep the cached copy in the store in step with the saved row
    store.patch_settings({k: saved[k] for k in patch})
    if "currency" in patch:
        store.set_currency(saved["currency"])
    if patch.get("theme") in ("light", "dark"):
        store.set_theme(saved["theme"])
    return saved
