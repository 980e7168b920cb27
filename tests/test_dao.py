import pytest
from sqlalchemy.exc import InvalidRequestError, OperationalError

from grafica.errors import DataAccessError, NotAuthenticatedError, NotFoundError
from grafica.models.service import STATUS_IN_PRODUCTION, ServiceOrderRead
from grafica.services.dao import (
    ClientsDAO,
    InksDAO,
    MaterialsDAO,
    ServicesDAO,
    SettingsDAO,
    is_relationship_error,
)


def _catalog(session, owner):
    client = ClientsDAO(session, owner).create({"name": "Padaria Central", "email": "pc@example.com"})
    material = MaterialsDAO(session, owner).create({"name": "Lona 440g", "unit": "m2", "cost_per_unit": 25})
    ink = InksDAO(session, owner).create({"name": "Solvente", "cost_per_liter": 200})
    return client, material, ink


def _order_payload(client, material, ink):
    return {
        "name": "Banner fachada",
        "client_id": client["id"],
        "labor_hours": 2,
        "labor_rate": 50,
        "markup": 40,
        "items": [{"material_id": material["id"], "unit": "m2", "width": 2, "height": 1}],
        "inks": [{"ink_id": ink["id"], "ml": 250}],
        "extras": [{"description": "Ilhós", "value": 10}],
        "discounts": [5],
    }


def test_crud_is_scoped_to_owner(session, owner):
    clients = ClientsDAO(session, owner)
    created = clients.create({"name": "Cliente A", "id": "forged", "user_id": "someone"})
    assert created["id"] != "forged"
    assert len(created["id"]) == 32

    other = ClientsDAO(session, lambda: "another-user")
    assert other.list() == []
    with pytest.raises(NotFoundError):
        other.get(created["id"])
    with pytest.raises(NotFoundError):
        other.update(created["id"], {"name": "hijack"})

    updated = clients.update(created["id"], {"name": "Cliente B"})
    assert updated["name"] == "Cliente B"
    clients.remove(created["id"])
    assert clients.list() == []


def test_requires_authenticated_owner(session):
    with pytest.raises(NotAuthenticatedError):
        ClientsDAO(session, lambda: None).list()
    with pytest.raises(NotAuthenticatedError):
        MaterialsDAO(session).create({"name": "x"})


def test_list_returns_owner_rows(session, owner):
    inks = InksDAO(session, owner)
    first = inks.create({"name": "Ciano", "cost_per_liter": 100})
    second = inks.create({"name": "Magenta", "cost_per_liter": 110})
    ids = [i["id"] for i in inks.list()]
    assert set(ids) == {first["id"], second["id"]}


def test_save_snapshots_costs_and_persists_totals(session, owner):
    client, material, ink = _catalog(session, owner)
    order = ServicesDAO(session, owner).save(_order_payload(client, material, ink))

    assert order["client"]["name"] == "Padaria Central"
    assert order["items"][0]["unit_cost_snapshot"] == 25
    assert order["inks"][0]["cost_per_liter_snapshot"] == 200
    # 50 (lona) + 50 (tinta) + 100 (mão de obra) + 10 - 5
    assert order["total_cost"] == pytest.approx(205)
    assert order["price"] == pytest.approx(287)
    assert order["profit"] == pytest.approx(82)
    assert order["margin"] == pytest.approx(82 / 287)


def test_snapshot_survives_catalog_edit(session, owner):
    client, material, ink = _catalog(session, owner)
    services = ServicesDAO(session, owner)
    order = services.save(_order_payload(client, material, ink))

    MaterialsDAO(session, owner).update(material["id"], {"cost_per_unit": 99})
    InksDAO(session, owner).update(ink["id"], {"cost_per_liter": 999})

    # header-only edit keeps the stored lines untouched
    updated = services.update(order["id"], {"status": STATUS_IN_PRODUCTION})
    assert updated["status"] == STATUS_IN_PRODUCTION
    assert updated["items"][0]["unit_cost_snapshot"] == 25
    assert updated["inks"][0]["cost_per_liter_snapshot"] == 200
    assert updated["price"] == pytest.approx(order["price"])


def test_explicit_snapshot_is_kept(session, owner):
    client, material, ink = _catalog(session, owner)
    payload = _order_payload(client, material, ink)
    payload["items"][0]["unit_cost_snapshot"] = 10
    order = ServicesDAO(session, owner).save(payload)
    assert order["items"][0]["unit_cost_snapshot"] == 10


def test_update_replaces_line_items(session, owner):
    client, material, ink = _catalog(session, owner)
    services = ServicesDAO(session, owner)
    order = services.save(_order_payload(client, material, ink))

    updated = services.update(order["id"], {"items": [], "extras": [], "discounts": []})
    assert updated["items"] == []
    assert updated["extras"] == []
    assert len(updated["inks"]) == 1
    # 50 (tinta) + 100 (mão de obra)
    assert updated["total_cost"] == pytest.approx(150)


def test_save_rejects_foreign_client(session, owner):
    foreign = ClientsDAO(session, lambda: "another-user").create({"name": "Alheio"})
    with pytest.raises(NotFoundError):
        ServicesDAO(session, owner).save({"name": "X", "client_id": foreign["id"]})


def test_payments_and_comments(session, owner):
    client, material, ink = _catalog(session, owner)
    services = ServicesDAO(session, owner)
    order = services.save(_order_payload(client, material, ink))

    services.add_payment(order["id"], {"amount": "100,50", "method": "pix", "paid_at": "05/03/2024"})
    result = services.add_comment(order["id"], {"body": "  Cliente aprovou a arte  "})

    assert result["payments"][0]["amount"] == pytest.approx(100.5)
    assert result["payments"][0]["method"] == "pix"
    assert result["payments"][0]["paid_at"].startswith("2024-03-05")
    assert result["comments"][0]["body"] == "Cliente aprovou a arte"


def test_remove_cascades_children(session, owner):
    client, material, ink = _catalog(session, owner)
    services = ServicesDAO(session, owner)
    order = services.save(_order_payload(client, material, ink))
    services.remove(order["id"])
    assert services.list() == []
    with pytest.raises(NotFoundError):
        services.get(order["id"])


def test_relationship_error_falls_back_to_separate_queries(session, owner, monkeypatch):
    client, material, ink = _catalog(session, owner)
    services = ServicesDAO(session, owner)
    order = services.save(_order_payload(client, material, ink))
    services.add_comment(order["id"], {"body": "ok"})
    joined = services.get(order["id"])

    def broken_join(self, owner_id, service_id=None):
        raise InvalidRequestError("Could not find a relationship between 'service_orders' and 'clients' in the schema cache")

    monkeypatch.setattr(ServicesDAO, "_joined", broken_join)
    fallback = services.get(order["id"])
    assert fallback == joined
    assert services.list() == [joined]


def test_other_errors_become_data_access_errors(session, owner, monkeypatch):
    def broken_join(self, owner_id, service_id=None):
        raise OperationalError("SELECT", {}, Exception("no such table: service_orders"))

    monkeypatch.setattr(ServicesDAO, "_joined", broken_join)
    with pytest.raises(DataAccessError) as exc:
        ServicesDAO(session, owner).list()
    assert "no such table" in exc.value.message
    assert exc.value.where == "service_orders.list"


def test_is_relationship_error():
    assert is_relationship_error(InvalidRequestError("Could not find a relationship in the schema cache"))
    assert not is_relationship_error(InvalidRequestError("bad column"))


def test_settings_get_defaults_then_upsert(session, owner, user):
    settings = SettingsDAO(session, owner)
    defaults = settings.get()
    assert defaults["user_id"] == user["id"]
    assert defaults["default_markup"] == 40
    assert defaults["id"] is None

    saved = settings.upsert({"company_name": "Gráfica Azul", "default_markup": 35})
    again = settings.upsert({"currency": "USD"})
    assert again["id"] == saved["id"]
    assert again["company_name"] == "Gráfica Azul"
    assert again["currency"] == "USD"


def test_new_order_labor_rate_defaults_match_table(session, owner):
    assert ServiceOrderRead(id="x").labor_rate == 60
    assert ServiceOrderRead(id="x", labor_rate=None).labor_rate == 60
    assert ServiceOrderRead(id="x", labor_rate=0).labor_rate == 0

    saved = ServicesDAO(session, owner).save({"name": "Sem mão de obra"})
    assert saved["labor_rate"] == 60
