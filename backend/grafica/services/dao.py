"""Data access objects, one per entity, scoped to the signed-in owner.

Every row returned here has been through the matching read schema and is
dumped in JSON mode, so callers (API handlers, the store, backups) all see
the same normalized shape.
"""
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import (
    AmbiguousForeignKeysError,
    ArgumentError,
    InvalidRequestError,
    NoForeignKeysError,
    SQLAlchemyError,
)
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from grafica.errors import DataAccessError, NotAuthenticatedError, NotFoundError, log_backend_error
from grafica.models.catalog import (
    Client,
    ClientRead,
    Ink,
    InkRead,
    Material,
    MaterialRead,
    Settings,
    SettingsRead,
)
from grafica.models.service import (
    ServiceComment,
    ServiceDiscount,
    ServiceExtra,
    ServiceInk,
    ServiceItem,
    ServiceOrder,
    ServiceOrderRead,
    ServicePayment,
)
from grafica.services.normalize import to_list, to_number, to_optional_number, to_str
from grafica.services.pricing import compute_totals
from grafica.utils.datetime import parse_date_input

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = {"id", "user_id", "created_at"}

_RELATIONSHIP_MARKERS = ("could not find a relationship", "schema cache", "relationship", "foreign key")


def is_relationship_error(exc: Exception) -> bool:
    """True for failures of the joined read caused by the schema, not the data."""
    if isinstance(exc, (NoForeignKeysError, AmbiguousForeignKeysError)):
        return True
    msg = str(exc).lower()
    return any(marker in msg for marker in _RELATIONSHIP_MARKERS)


class EntityDAO:
    model: Any = None
    read_model: Any = None
    where: str = ""

    def __init__(self, session: Session, user_id_provider: Optional[Callable[[], Optional[str]]] = None,
                 autocommit: bool = True):
        self.session = session
        self.user_id_provider = user_id_provider
        # False: writes are only flushed and the caller owns the transaction
        self.autocommit = autocommit

    # -- helpers -------------------------------------------------------------

    def _owner(self) -> str:
        user_id = self.user_id_provider() if self.user_id_provider else None
        if not user_id:
            raise NotAuthenticatedError()
        return user_id

    def _commit(self) -> None:
        if self.autocommit:
            self.session.commit()
        else:
            self.session.flush()

    def _fail(self, action: str, exc: Exception) -> DataAccessError:
        self.session.rollback()
        where = f"{self.where}.{action}"
        return DataAccessError(log_backend_error(where, exc), where=where)

    def _read(self, row: Any) -> Dict[str, Any]:
        return self.read_model.model_validate(row).model_dump(mode="json")

    def _writable(self, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = self.model.model_fields
        return {k: v for k, v in (data or {}).items() if k in fields and k not in PROTECTED_FIELDS}

    def _row(self, entity_id: str):
        owner = self._owner()
        row = self.session.get(self.model, entity_id)
        if row is None or row.user_id != owner:
            raise NotFoundError(f"{self.where} {entity_id} not found", where=f"{self.where}.get")
        return row

    # -- CRUD ----------------------------------------------------------------

    def list(self) -> List[Dict[str, Any]]:
        owner = self._owner()
        stmt = select(self.model).where(self.model.user_id == owner).order_by(self.model.created_at.desc())
        try:
            return [self._read(r) for r in self.session.exec(stmt).all()]
        except SQLAlchemyError as e:
            raise self._fail("list", e)

    def get(self, entity_id: str) -> Dict[str, Any]:
        return self._read(self._row(entity_id))

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        owner = self._owner()
        row = self.model(**self._writable(data), user_id=owner)
        try:
            self.session.add(row)
            self._commit()
            self.session.refresh(row)
        except SQLAlchemyError as e:
            raise self._fail("create", e)
        logger.info("Created %s id=%s", self.where, row.id)
        return self._read(row)

    def update(self, entity_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        row = self._row(entity_id)
        for key, value in self._writable(patch).items():
            setattr(row, key, value)
        try:
            self.session.add(row)
            self._commit()
            self.session.refresh(row)
        except SQLAlchemyError as e:
            raise self._fail("update", e)
        logger.info("Updated %s id=%s", self.where, entity_id)
        return self._read(row)

    def remove(self, entity_id: str) -> None:
        row = self._row(entity_id)
        try:
            self.session.delete(row)
            self._commit()
        except SQLAlchemyError as e:
            raise self._fail("remove", e)
        logger.info("Removed %s id=%s", self.where, entity_id)


class ClientsDAO(EntityDAO):
    model = Client
    read_model = ClientRead
    where = "clients"


class MaterialsDAO(EntityDAO):
    model = Material
    read_model = MaterialRead
    where = "materials"


class InksDAO(EntityDAO):
    model = Ink
    read_model = InkRead
    where = "inks"


_CHILDREN = (
    ("items", ServiceItem),
    ("inks", ServiceInk),
    ("extras", ServiceExtra),
    ("discounts", ServiceDiscount),
    ("payments", ServicePayment),
    ("comments", ServiceComment),
)


class ServicesDAO(EntityDAO):
    model = ServiceOrder
    read_model = ServiceOrderRead
    where = "service_orders"

    # -- reads -----------------------------------------------------------------

    def _joined_query(self, owner: str, service_id: Optional[str] = None):
        stmt = select(ServiceOrder).options(
            selectinload(ServiceOrder.client),
            selectinload(ServiceOrder.items),
            selectinload(ServiceOrder.inks),
            selectinload(ServiceOrder.extras),
            selectinload(ServiceOrder.discounts),
            selectinload(ServiceOrder.payments),
            selectinload(ServiceOrder.comments),
        ).where(ServiceOrder.user_id == owner)
        if service_id is not None:
            stmt = stmt.where(ServiceOrder.id == service_id)
        return stmt.order_by(ServiceOrder.created_at.desc())

    def _joined(self, owner: str, service_id: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = self.session.exec(self._joined_query(owner, service_id)).all()
        return [self._read(r) for r in rows]

    def _unjoined(self, owner: str, service_id: Optional[str] = None) -> List[Dict[str, Any]]:
        stmt = select(ServiceOrder).where(ServiceOrder.user_id == owner)
        if service_id is not None:
            stmt = stmt.where(ServiceOrder.id == service_id)
        try:
            orders = self.session.exec(stmt.order_by(ServiceOrder.created_at.desc())).all()
        except SQLAlchemyError as e:
            raise self._fail("list.base", e)

        records = [o.model_dump() for o in orders]
        ids = [r["id"] for r in records]

        clients: Dict[str, Dict[str, Any]] = {}
        client_ids = sorted({r["client_id"] for r in records if r.get("client_id")})
        if client_ids:
            try:
                for c in self.session.exec(select(Client).where(Client.id.in_(client_ids))).all():
                    clients[c.id] = c.model_dump()
            except SQLAlchemyError as e:
                self.session.rollback()
                log_backend_error(f"{self.where}.list.clients", e)

        grouped: Dict[str, Dict[str, List[Dict[str, Any]]]] = defaultdict(lambda: defaultdict(list))
        if ids:
            for key, child in _CHILDREN:
                try:
                    for row in self.session.exec(select(child).where(child.service_id.in_(ids))).all():
                        grouped[row.service_id][key].append(row.model_dump())
                except SQLAlchemyError as e:
                    self.session.rollback()
                    log_backend_error(f"{self.where}.list.{key}", e)

        merged = []
        for r in records:
            children = grouped.get(r["id"], {})
            r["client"] = clients.get(r.get("client_id"))
            for key, _ in _CHILDREN:
                r[key] = children.get(key, [])
            merged.append(self.read_model.model_validate(r).model_dump(mode="json"))
        return merged

    def _fetch(self, service_id: Optional[str] = None) -> List[Dict[str, Any]]:
        owner = self._owner()
        try:
            return self._joined(owner, service_id)
        except (InvalidRequestError, ArgumentError) as e:
            if not is_relationship_error(e):
                raise self._fail("list", e)
            self.session.rollback()
            logger.warning("Joined service read failed (%s); falling back to separate queries", e)
            return self._unjoined(owner, service_id)
        except SQLAlchemyError as e:
            raise self._fail("list", e)

    def list(self) -> List[Dict[str, Any]]:
        return self._fetch()

    def get(self, entity_id: str) -> Dict[str, Any]:
        rows = self._fetch(entity_id)
        if not rows:
            raise NotFoundError(f"{self.where} {entity_id} not found", where=f"{self.where}.get")
        return rows[0]

    # -- writes ----------------------------------------------------------------

    def _catalog_cost(self, model: Any, entity_id: Optional[str], attr: str, owner: str) -> float:
        if not entity_id:
            return 0.0
        row = self.session.get(model, entity_id)
        if row is None or row.user_id != owner:
            return 0.0
        return to_number(getattr(row, attr))

    def _build_items(self, order: ServiceOrder, raw_items: Any, owner: str) -> List[ServiceItem]:
        items = []
        for raw in to_list(raw_items):
            raw = raw or {}
            snapshot = to_optional_number(raw.get("unit_cost_snapshot"))
            if snapshot is None:
                snapshot = self._catalog_cost(Material, raw.get("material_id"), "cost_per_unit", owner)
            items.append(ServiceItem(
                service_id=order.id,
                material_id=raw.get("material_id") or None,
                unit=to_str(raw.get("unit"), "m"),
                quantity=to_number(raw.get("quantity"), default=1.0),
                meters=to_optional_number(raw.get("meters")),
                width=to_optional_number(raw.get("width")),
                height=to_optional_number(raw.get("height")),
                unit_cost_snapshot=snapshot,
            ))
        return items

    def _build_inks(self, order: ServiceOrder, raw_inks: Any, owner: str) -> List[ServiceInk]:
        inks = []
        for raw in to_list(raw_inks):
            raw = raw or {}
            snapshot = to_optional_number(raw.get("cost_per_liter_snapshot"))
            if snapshot is None:
                snapshot = self._catalog_cost(Ink, raw.get("ink_id"), "cost_per_liter", owner)
            ml = raw.get("ml", raw.get("ml_used"))
            inks.append(ServiceInk(
                service_id=order.id,
                ink_id=raw.get("ink_id") or None,
                ml=to_number(ml),
                cost_per_liter_snapshot=snapshot,
            ))
        return inks

    @staticmethod
    def _build_adjustments(order: ServiceOrder, raw: Any, model: Any) -> List[Any]:
        rows = []
        for adj in to_list(raw):
            if isinstance(adj, dict):
                rows.append(model(service_id=order.id, description=to_str(adj.get("description")),
                                  value=to_number(adj.get("value"))))
            else:
                rows.append(model(service_id=order.id, description="", value=to_number(adj)))
        return rows

    @staticmethod
    def draft_of(order: ServiceOrder) -> Dict[str, Any]:
        """Pricing input for a persisted order (header labor + owned line items)."""
        return {
            "items": [i.model_dump() for i in order.items],
            "inks": [i.model_dump() for i in order.inks],
            "labor_hours": order.labor_hours,
            "labor_rate": order.labor_rate,
            "extras": [e.model_dump() for e in order.extras],
            "discounts": [d.model_dump() for d in order.discounts],
            "markup": order.markup,
            "manual_price": order.manual_price,
        }

    def save(self, payload: Dict[str, Any], service_id: Optional[str] = None) -> Dict[str, Any]:
        """Create or update an order, recomputing and persisting its totals.

        Line-item collections present in `payload` replace the stored ones
        wholesale; absent collections are left untouched. Snapshot costs are
        copied from the catalog only for lines that arrive without one.
        """
        owner = self._owner()
        if service_id is None:
            order = ServiceOrder(user_id=owner, name=to_str(payload.get("name")))
        else:
            order = self._row(service_id)

        client_id = payload.get("client_id", order.client_id) or None
        if client_id:
            client = self.session.get(Client, client_id)
            if client is None or client.user_id != owner:
                raise NotFoundError(f"client {client_id} not found", where=f"{self.where}.save")

        if "name" in payload:
            order.name = to_str(payload.get("name"))
        if "status" in payload and payload.get("status"):
            order.status = to_str(payload.get("status"))
        if "due_date" in payload:
            order.due_date = parse_date_input(payload.get("due_date"))
        for key in ("labor_hours", "labor_rate"):
            if key in payload:
                setattr(order, key, to_number(payload.get(key)))
        if "markup" in payload:
            order.markup = to_number(payload.get("markup"), default=40.0)
        if "manual_price" in payload:
            order.manual_price = to_optional_number(payload.get("manual_price"))
        order.client_id = client_id

        if "items" in payload:
            order.items = self._build_items(order, payload.get("items"), owner)
        if "inks" in payload:
            order.inks = self._build_inks(order, payload.get("inks"), owner)
        if "extras" in payload:
            order.extras = self._build_adjustments(order, payload.get("extras"), ServiceExtra)
        if "discounts" in payload:
            order.discounts = self._build_adjustments(order, payload.get("discounts"), ServiceDiscount)

        totals = compute_totals(self.draft_of(order))
        order.total_cost = totals.total_cost
        order.price = totals.price
        order.profit = totals.profit
        order.margin = totals.margin

        try:
            self.session.add(order)
            self._commit()
        except SQLAlchemyError as e:
            raise self._fail("save", e)
        logger.info("Saved service order id=%s price=%.2f margin=%.4f", order.id, order.price, order.margin)
        order_id = order.id
        # relationships loaded before the commit may be stale (client swap, replaced lines)
        self.session.expire(order)
        return self.get(order_id)

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.save(data)

    def update(self, entity_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return self.save(patch, service_id=entity_id)

    def add_payment(self, service_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        order = self._row(service_id)
        payment = ServicePayment(
            service_id=order.id,
            amount=to_number(data.get("amount")),
            method=data.get("method"),
        )
        paid_at = parse_date_input(data.get("paid_at"))
        if paid_at is not None:
            payment.paid_at = paid_at
        return self._append(order, payment, "add_payment")

    def add_comment(self, service_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        order = self._row(service_id)
        comment = ServiceComment(service_id=order.id, body=to_str(data.get("body")))
        return self._append(order, comment, "add_comment")

    def _append(self, order: ServiceOrder, row: Any, action: str) -> Dict[str, Any]:
        try:
            self.session.add(row)
            self._commit()
        except SQLAlchemyError as e:
            raise self._fail(action, e)
        order_id = order.id
        self.session.expire(order)
        return self.get(order_id)


class SettingsDAO(EntityDAO):
    model = Settings
    read_model = SettingsRead
    where = "settings"

    def _current(self, owner: str) -> Optional[Settings]:
        try:
            return self.session.exec(select(Settings).where(Settings.user_id == owner)).first()
        except SQLAlchemyError as e:
            raise self._fail("get", e)

    def get(self) -> Dict[str, Any]:
        owner = self._owner()
        row = self._current(owner)
        if row is None:
            return SettingsRead(user_id=owner).model_dump(mode="json")
        return self._read(row)

    def upsert(self, data: Dict[str, Any]) -> Dict[str, Any]:
        owner = self._owner()
        row = self._current(owner) or Settings(user_id=owner)
        for key, value in self._writable(data).items():
            if value is not None:
                setattr(row, key, value)
        try:
            self.session.add(row)
            self._commit()
            self.session.refresh(row)
        except SQLAlchemyError as e:
            raise self._fail("upsert", e)
        return self._read(row)
