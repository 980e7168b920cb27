import logging
from typing import Any, Callable, Dict

from fastapi import APIRouter, Body, Depends

from grafica.api.deps import ensure_valid, get_owner
from grafica.db.session import get_session
from grafica.models.draft import ServiceDraft
from grafica.services.dao import ServicesDAO
from grafica.services.pricing import PriceEngine
from grafica.services.validation import Validator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/quote")
async def quote(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    """Price a draft without saving it (the live totals shown while editing)."""
    validation = Validator().validate_service(payload, partial=True)
    ensure_valid(validation)

    draft = ServiceDraft.model_validate(payload)
    pricing = PriceEngine().estimate(draft)
    logger.debug("Quote for draft => price=%s margin=%s", pricing["price"], pricing["margin"])
    return {"draft": draft.model_dump(), "pricing": pricing}


@router.get("/services/{service_id}")
def reprice_service(service_id: str, owner: Callable = Depends(get_owner)) -> Dict[str, Any]:
    """Recompute a stored order from its snapshotted line items."""
    session = get_session()
    try:
        service = ServicesDAO(session, owner).get(service_id)
    finally:
        session.close()
    pricing = PriceEngine().estimate(service)
    logger.info("Repriced service id=%s => %s", service_id, pricing["final_price"])
    return {"service_id": service_id, "pricing": pricing}
