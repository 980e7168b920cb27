import logging
from typing import Any, Callable, Dict

from fastapi import APIRouter, Body, Depends, Response

from grafica.api.deps import ensure_valid, get_owner
from grafica.db.session import get_session
from grafica.models.service import CommentCreate, PaymentCreate
from grafica.services.dao import ServicesDAO
from grafica.services.validation import Validator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/")
def list_services(owner: Callable = Depends(get_owner)):
    session = get_session()
    try:
        return ServicesDAO(session, owner).list()
    finally:
        session.close()


@router.get("/{service_id}")
def get_service(service_id: str, owner: Callable = Depends(get_owner)):
    session = get_session()
    try:
        return ServicesDAO(session, owner).get(service_id)
    finally:
        session.close()


@router.post("/", status_code=201)
def create_service(payload: Dict[str, Any] = Body(...), owner: Callable = Depends(get_owner)):
    """Create an order; totals are computed from the draft and stored with it."""
    ensure_valid(Validator().validate_service(payload))
    session = get_session()
    try:
        service = ServicesDAO(session, owner).create(payload)
    finally:
        session.close()
    logger.info("Service created id=%s total_cost=%s price=%s", service["id"], service["total_cost"], service["price"])
    return service


@router.put("/{service_id}")
def update_service(service_id: str, payload: Dict[str, Any] = Body(...), owner: Callable = Depends(get_owner)):
    ensure_valid(Validator().validate_service(payload, partial=True))
    session = get_session()
    try:
        return ServicesDAO(session, owner).update(service_id, payload)
    finally:
        session.close()


@router.delete("/{service_id}", status_code=204)
def delete_service(service_id: str, owner: Callable = Depends(get_owner)):
    session = get_session()
    try:
        ServicesDAO(session, owner).remove(service_id)
    finally:
        session.close()
    return Response(status_code=204)


@router.post("/{service_id}/payments", status_code=201)
def add_payment(service_id: str, payment: PaymentCreate, owner: Callable = Depends(get_owner)):
    session = get_session()
    try:
        return ServicesDAO(session, owner).add_payment(service_id, payment.model_dump())
    finally:
        session.close()


@router.post("/{service_id}/comments", status_code=201)
def add_comment(service_id: str, comment: CommentCreate, owner: Callable = Depends(get_owner)):
    session = get_session()
    try:
        return ServicesDAO(session, owner).add_comment(service_id, comment.model_dump())
    finally:
        session.close()
