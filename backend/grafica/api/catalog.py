"""CRUD routers for the catalog entities (clients, materials, inks).

The three resources behave the same way, so one factory builds each router
from its DAO class and its validation method.
"""
from typing import Any, Callable, Dict

from fastapi import APIRouter, Body, Depends, Response

from grafica.api.deps import ensure_valid, get_owner
from grafica.db.session import get_session
from grafica.services.dao import ClientsDAO, InksDAO, MaterialsDAO
from grafica.services.normalize import to_number
from grafica.services.validation import Validator

NUMERIC_FIELDS = ("cost_per_unit", "cost_per_liter")


def _clean(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(payload)
    for key in NUMERIC_FIELDS:
        if key in data:
            data[key] = to_number(data[key])
    for key in ("name", "email", "phone"):
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    return data


def build_router(dao_cls, validate_name: str) -> APIRouter:
    router = APIRouter()

    def validate(payload: Dict[str, Any], partial: bool = False) -> None:
        ensure_valid(getattr(Validator(), validate_name)(payload, partial=partial))

    @router.get("/")
    def list_rows(owner: Callable = Depends(get_owner)):
        session = get_session()
        try:
            return dao_cls(session, owner).list()
        finally:
            session.close()

    @router.get("/{entity_id}")
    def get_row(entity_id: str, owner: Callable = Depends(get_owner)):
        session = get_session()
        try:
            return dao_cls(session, owner).get(entity_id)
        finally:
            session.close()

    @router.post("/", status_code=201)
    def create_row(payload: Dict[str, Any] = Body(...), owner: Callable = Depends(get_owner)):
        validate(payload)
        session = get_session()
        try:
            return dao_cls(session, owner).create(_clean(payload))
        finally:
            session.close()

    @router.put("/{entity_id}")
    def update_row(entity_id: str, payload: Dict[str, Any] = Body(...), owner: Callable = Depends(get_owner)):
        validate(payload, partial=True)
        session = get_session()
        try:
            return dao_cls(session, owner).update(entity_id, _clean(payload))
        finally:
            session.close()

    @router.delete("/{entity_id}", status_code=204)
    def delete_row(entity_id: str, owner: Callable = Depends(get_owner)):
        session = get_session()
        try:
            dao_cls(session, owner).remove(entity_id)
        finally:
            session.close()
        return Response(status_code=204)

    return router


clients_router = build_router(ClientsDAO, "validate_client")
materials_router = build_router(MaterialsDAO, "validate_material")
inks_router = build_router(InksDAO, "validate_ink")
