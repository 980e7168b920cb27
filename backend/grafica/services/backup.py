"""JSON backup export/import.

Import replaces everything the owner has (it is not a merge) and runs as
one transaction. Ids are regenerated on the way in and client/material/ink
references inside service orders are remapped to the new ids.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from grafica.errors import BackupFormatError, DataAccessError, log_backend_error
from grafica.models.catalog import Client, Ink, Material, Settings
from grafica.models.service import ServiceOrder
from grafica.services.dao import ClientsDAO, InksDAO, MaterialsDAO, ServicesDAO, SettingsDAO
from grafica.services.validation import Validator

logger = logging.getLogger(__name__)

BACKUP_FORMAT = "grafica-backup"
BACKUP_VERSION = 1

_SERVICE_FIELDS = ("name", "status", "due_date", "labor_hours", "labor_rate", "markup", "manual_price")


def export_backup(session: Session, user_id: str) -> Dict[str, Any]:
    def owner():
        return user_id

    return {
        "format": BACKUP_FORMAT,
        "version": BACKUP_VERSION,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "settings": SettingsDAO(session, owner).get(),
        "clients": ClientsDAO(session, owner).list(),
        "materials": MaterialsDAO(session, owner).list(),
        "inks": InksDAO(session, owner).list(),
        "services": ServicesDAO(session, owner).list(),
    }


def _check_document(document: Any) -> None:
    if not isinstance(document, dict) or document.get("format") != BACKUP_FORMAT:
        raise BackupFormatError("not a backup document")
    if document.get("version") != BACKUP_VERSION:
        raise BackupFormatError(f"unsupported backup version: {document.get('version')}")
    for key in ("clients", "materials", "inks", "services"):
        if not isinstance(document.get(key, []), list):
            raise BackupFormatError(f"'{key}' must be a list")
    if document.get("settings") is not None and not isinstance(document["settings"], dict):
        raise BackupFormatError("'settings' must be an object")
    _check_entries(document)


def _check_entries(document: Dict[str, Any]) -> None:
    """Reject the whole document if any entry would fail to import."""
    validator = Validator()
    checks = (
        ("clients", validator.validate_client),
        ("materials", validator.validate_material),
        ("inks", validator.validate_ink),
        ("services", validator.validate_service),
    )
    for key, check in checks:
        for idx, entry in enumerate(document.get(key, [])):
            if not isinstance(entry, dict):
                raise BackupFormatError(f"{key}[{idx}] must be an object")
            result = check(entry)
            if not result["valid"]:
                raise BackupFormatError(f"{key}[{idx}] is invalid: {', '.join(result['issues'])}")
            if key != "services":
                continue
            for child in ("payments", "comments"):
                rows = entry.get(child) or []
                if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
                    raise BackupFormatError(f"{key}[{idx}].{child} must be a list of objects")


def _wipe(session: Session, user_id: str) -> None:
    # service orders first so their children go before the catalog rows they point at
    for model in (ServiceOrder, Client, Material, Ink, Settings):
        for row in session.exec(select(model).where(model.user_id == user_id)).all():
            session.delete(row)
    session.flush()


def import_backup(session: Session, user_id: str, document: Dict[str, Any]) -> Dict[str, int]:
    """Replace the owner's data with `document` in a single transaction.

    The document is checked in full before anything is deleted; a failure
    while writing rolls back the wipe as well, leaving the previous data.
    """
    _check_document(document)

    def owner():
        return user_id

    try:
        _wipe(session, user_id)
        summary = _restore(session, owner, document)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise DataAccessError(log_backend_error("backup.import", e), where="backup.import")
    except Exception:
        session.rollback()
        raise

    logger.info("Imported backup for user id=%s: %s", user_id, summary)
    return summary


def _restore(session: Session, owner, document: Dict[str, Any]) -> Dict[str, int]:
    clients, materials, inks, services = (
        ClientsDAO(session, owner, autocommit=False),
        MaterialsDAO(session, owner, autocommit=False),
        InksDAO(session, owner, autocommit=False),
        ServicesDAO(session, owner, autocommit=False),
    )
    client_ids: Dict[str, str] = {}
    material_ids: Dict[str, str] = {}
    ink_ids: Dict[str, str] = {}

    for c in document.get("clients", []):
        client_ids[c.get("id")] = clients.create(c)["id"]
    for m in document.get("materials", []):
        material_ids[m.get("id")] = materials.create(m)["id"]
    for i in document.get("inks", []):
        ink_ids[i.get("id")] = inks.create(i)["id"]

    imported_services = 0
    for s in document.get("services", []):
        payload = {k: s.get(k) for k in _SERVICE_FIELDS if k in s}
        payload["client_id"] = client_ids.get(s.get("client_id"))
        payload["items"] = [
            {**item, "material_id": material_ids.get(item.get("material_id"))}
            for item in s.get("items") or []
        ]
        payload["inks"] = [
            {**ink, "ink_id": ink_ids.get(ink.get("ink_id"))}
            for ink in s.get("inks") or []
        ]
        payload["extras"] = s.get("extras") or []
        payload["discounts"] = s.get("discounts") or []
        saved = services.save(payload)
        for p in s.get("payments") or []:
            services.add_payment(saved["id"], p)
        for c in s.get("comments") or []:
            services.add_comment(saved["id"], c)
        imported_services += 1

    if isinstance(document.get("settings"), dict):
        SettingsDAO(session, owner, autocommit=False).upsert(document["settings"])

    return {
        "clients": len(client_ids),
        "materials": len(material_ids),
        "inks": len(ink_ids),
        "services": imported_services,
    }
