import logging
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from grafica.errors import backend_message
from grafica.models.catalog import Client, Ink, Material
from grafica.models.service import STATUS_APPROVED, ServiceOrder
from grafica.services.dao import ClientsDAO, InksDAO, MaterialsDAO, ServicesDAO

logger = logging.getLogger(__name__)

COUNTED = {"clients": Client, "materials": Material, "inks": Ink, "service_orders": ServiceOrder}


def get_counts(session: Session, user_id: str) -> Dict[str, Any]:
    """Row counts per table for the owner; a failing table reports its error text."""
    out: Dict[str, Any] = {}
    for name, model in COUNTED.items():
        try:
            total = session.exec(select(func.count()).select_from(model).where(model.user_id == user_id)).one()
            if isinstance(total, tuple):
                total = total[0]
            out[name] = int(total or 0)
        except SQLAlchemyError as e:
            session.rollback()
            out[name] = f"erro: {backend_message(e)}"
    logger.info("[diagnostics] %s", out)
    return out


def seed_demo(session: Session, user_id: str) -> Dict[str, Any]:
    """Create one example client, material, ink and a priced service order."""
    def owner():
        return user_id

    client = ClientsDAO(session, owner).create(
        {"name": "Cliente Exemplo", "email": "exemplo@cliente.com", "phone": "+5511999999999"}
    )
    material = MaterialsDAO(session, owner).create({"name": "Vinil Fosco 1,06m", "unit": "m", "cost_per_unit": 18.5})
    ink = InksDAO(session, owner).create({"name": "CMYK EcoSolv", "cost_per_liter": 120.0})
    service = ServicesDAO(session, owner).save({
        "name": "Faixa Promocional",
        "status": STATUS_APPROVED,
        "client_id": client["id"],
        "labor_hours": 1.5,
        "labor_rate": 60,
        "markup": 40,
        "items": [{"material_id": material["id"], "unit": "m", "meters": 5, "quantity": 1}],
        "inks": [{"ink_id": ink["id"], "ml": 120}],
    })
    logger.info("Seeded demo data for user id=%s service=%s", user_id, service["id"])
    return {"client": client, "material": material, "ink": ink, "service": service}
