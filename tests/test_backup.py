import pytest

from grafica.errors import BackupFormatError, DataAccessError
from grafica.services.backup import BACKUP_FORMAT, BACKUP_VERSION, export_backup, import_backup
from grafica.services.dao import ClientsDAO, ServicesDAO, SettingsDAO
from grafica.services.seed import get_counts, seed_demo


def test_seed_demo_prices_the_example_order(session, user):
    created = seed_demo(session, user["id"])
    service = created["service"]
    # 5 m × 18.5 + 120 ml × 120/L + 1.5 h × 60
    assert service["total_cost"] == pytest.approx(196.9)
    assert service["price"] == pytest.approx(275.66)
    assert service["client"]["name"] == "Cliente Exemplo"
    assert service["items"][0]["unit_cost_snapshot"] == 18.5
    assert get_counts(session, user["id"]) == {"clients": 1, "materials": 1, "inks": 1, "service_orders": 1}


def test_counts_are_per_owner(session, user):
    seed_demo(session, user["id"])
    assert get_counts(session, "someone-else") == {"clients": 0, "materials": 0, "inks": 0, "service_orders": 0}


def test_export_document_shape(session, user):
    seed_demo(session, user["id"])
    doc = export_backup(session, user["id"])
    assert doc["format"] == BACKUP_FORMAT
    assert doc["version"] == BACKUP_VERSION
    assert len(doc["clients"]) == 1
    assert len(doc["services"]) == 1
    assert doc["services"][0]["inks"][0]["ml"] == 120


def test_import_replaces_instead_of_appending(session, user):
    seed_demo(session, user["id"])
    doc = export_backup(session, user["id"])
    old_service = doc["services"][0]

    summary = import_backup(session, user["id"], doc)
    assert summary == {"clients": 1, "materials": 1, "inks": 1, "services": 1}
    assert get_counts(session, user["id"])["service_orders"] == 1

    def owner():
        return user["id"]

    services = ServicesDAO(session, owner).list()
    clients = ClientsDAO(session, owner).list()
    restored = services[0]
    assert restored["id"] != old_service["id"]
    assert restored["client_id"] == clients[0]["id"]
    assert restored["price"] == pytest.approx(old_service["price"])
    assert restored["items"][0]["unit_cost_snapshot"] == 18.5


def test_import_restores_payments_comments_and_settings(session, user):
    def owner():
        return user["id"]

    created = seed_demo(session, user["id"])
    services = ServicesDAO(session, owner)
    services.add_payment(created["service"]["id"], {"amount": 100, "method": "pix"})
    services.add_comment(created["service"]["id"], {"body": "entregar sexta"})
    SettingsDAO(session, owner).upsert({"company_name": "Gráfica Azul"})

    doc = export_backup(session, user["id"])
    import_backup(session, user["id"], doc)

    restored = services.list()[0]
    assert restored["payments"][0]["amount"] == 100
    assert restored["comments"][0]["body"] == "entregar sexta"
    assert SettingsDAO(session, owner).get()["company_name"] == "Gráfica Azul"


@pytest.mark.parametrize("document", [
    None,
    {"format": "other"},
    {"format": BACKUP_FORMAT, "version": 99},
    {"format": BACKUP_FORMAT, "version": BACKUP_VERSION, "clients": "nope"},
])
def test_import_rejects_bad_documents(session, user, document):
    seed_demo(session, user["id"])
    with pytest.raises(BackupFormatError):
        import_backup(session, user["id"], document)
    # nothing was wiped
    assert get_counts(session, user["id"])["clients"] == 1


@pytest.mark.parametrize("key, entry", [
    ("clients", {"id": "c1", "email": "x@example.com"}),
    ("materials", {"id": "m1", "name": "Lona", "unit": "kg", "cost_per_unit": 1}),
    ("inks", {"id": "i1", "name": "Eco", "cost_per_liter": "caro"}),
    ("services", {"id": "s1", "name": "Banner", "items": [{"unit": "m"}]}),
    ("services", "not an object"),
])
def test_import_rejects_invalid_entries_before_wiping(session, user, key, entry):
    seed_demo(session, user["id"])
    doc = export_backup(session, user["id"])
    doc[key] = doc[key] + [entry]

    with pytest.raises(BackupFormatError):
        import_backup(session, user["id"], doc)
    assert get_counts(session, user["id"]) == {"clients": 1, "materials": 1, "inks": 1, "service_orders": 1}


def test_failed_import_rolls_back_the_wipe(session, user, monkeypatch):
    seed_demo(session, user["id"])
    doc = export_backup(session, user["id"])
    doc["clients"].append({"id": "c2", "name": "Outro Cliente"})

    def broken_save(self, payload, service_id=None):
        raise DataAccessError("disk full", where="service_orders.save")

    monkeypatch.setattr(ServicesDAO, "save", broken_save)
    with pytest.raises(DataAccessError):
        import_backup(session, user["id"], doc)

    assert get_counts(session, user["id"]) == {"clients": 1, "materials": 1, "inks": 1, "service_orders": 1}

    def owner():
        return user["id"]

    assert [c["name"] for c in ClientsDAO(session, owner).list()] == ["Cliente Exemplo"]
