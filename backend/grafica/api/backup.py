from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from grafica.api.deps import get_store, require_user
from grafica.db.session import get_session
from grafica.services.backup import export_backup, import_backup
from grafica.services.seed import get_counts, seed_demo
from grafica.services.store import AppStore

router = APIRouter()


@router.get("/backup/export")
def export(user_id: str = Depends(require_user)):
    session = get_session()
    try:
        return export_backup(session, user_id)
    finally:
        session.close()


@router.post("/backup/import")
def restore(document: Dict[str, Any] = Body(...), user_id: str = Depends(require_user),
            store: AppStore = Depends(get_store)):
    """Replace the current user's data with the backup contents."""
    session = get_session()
    try:
        summary = import_backup(session, user_id, document)
    finally:
        session.close()
    # cached collections are now stale
    store.set_state({"clients": [], "materials": [], "inks": [], "services": []})
    return {"imported": summary}


@router.post("/seed", status_code=201)
def seed(user_id: str = Depends(require_user)):
    session = get_session()
    try:
        created = seed_demo(session, user_id)
    finally:
        session.close()
    return {"service_id": created["service"]["id"], "price": created["service"]["price"]}


@router.get("/seed/counts")
def counts(user_id: str = Depends(require_user)):
    session = get_session()
    try:
        return get_counts(session, user_id)
    finally:
        session.close()
