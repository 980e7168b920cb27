import json
import threading
import time

import pytest

from grafica.errors import DuplicateIdentityError, InvalidCredentialsError, NotAuthenticatedError, UserNotFoundError
from grafica.services.store import (
    STORAGE_KEY,
    AppStore,
    JsonFilePersistence,
    MemoryPersistence,
    public_user,
)


def test_defaults():
    store = AppStore()
    state = store.get_state()
    assert state["locale"] == "pt-BR"
    assert state["currency"] == "BRL"
    assert state["theme"] == "dark"
    assert state["auth"] == {"user_id": None}
    assert state["settings"]["default_markup"] == 30
    assert "dark" in store.root_classes


def test_set_locale_derives_currency_and_set_currency_keeps_locale():
    store = AppStore()
    store.set_locale("en-US")
    assert store.get_state()["currency"] == "USD"
    store.set_currency("EUR")
    state = store.get_state()
    assert state["currency"] == "EUR"
    assert state["locale"] == "en-US"
    store.set_locale("pt-BR")
    assert store.get_state()["currency"] == "BRL"


def test_subscribe_called_once_per_set_state_and_unsubscribe():
    store = AppStore()
    calls = []
    unsubscribe = store.subscribe(lambda: calls.append(1))
    store.set_state({"sidebar_open": False})
    store.set_current_page("clients")
    assert len(calls) == 2
    unsubscribe()
    store.set_state({"sidebar_open": True})
    assert len(calls) == 2


def test_same_listener_subscribed_twice_is_called_twice():
    store = AppStore()
    calls = []

    def listener():
        calls.append(1)

    store.subscribe(listener)
    store.subscribe(listener)
    store.set_state({"current_page": "inks"})
    assert len(calls) == 2


def test_failing_listener_does_not_stop_others():
    store = AppStore()
    seen = []

    def broken():
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(lambda: seen.append(store.get_state()["current_page"]))
    store.set_current_page("services")
    assert seen == ["services"]


def test_set_state_accepts_function():
    store = AppStore()
    store.set_clients([{"id": "a"}])
    store.set_state(lambda s: {"clients": s["clients"] + [{"id": "b"}]})
    assert [c["id"] for c in store.get_state()["clients"]] == ["a", "b"]


def test_get_state_returns_copy():
    store = AppStore()
    snapshot = store.get_state()
    snapshot["locale"] = "xx"
    assert store.get_state()["locale"] == "pt-BR"


def test_select_passes_projection():
    store = AppStore()
    seen = []
    unsubscribe = store.select(lambda s: s["currency"], seen.append)
    store.set_locale("en-US")
    store.set_sidebar_open(False)
    unsubscribe()
    store.set_currency("EUR")
    assert seen == ["USD", "USD"]


def test_patch_settings_merges():
    store = AppStore()
    store.patch_settings({"company_name": "Gráfica Azul"})
    settings = store.get_state()["settings"]
    assert settings["company_name"] == "Gráfica Azul"
    assert settings["default_unit"] == "m2"


def test_set_theme_toggles_root_class_and_calls_hook():
    changes = []
    store = AppStore(on_theme_change=changes.append)
    store.set_theme("light")
    assert "dark" not in store.root_classes
    store.set_theme("dark")
    assert "dark" in store.root_classes
    assert changes == [False, True]


def test_theme_listeners_see_root_class_already_updated():
    store = AppStore()
    seen = []
    store.subscribe(lambda: seen.append(("dark" in store.root_classes, store.get_state()["theme"])))
    store.set_theme("light")
    store.set_theme("dark")
    assert seen == [(False, "light"), (True, "dark")]


def test_detected_preferences_only_switch_default_locale():
    store = AppStore()
    store.apply_detected_preferences("en-GB", prefers_dark=False)
    state = store.get_state()
    assert state["locale"] == "en-US"
    assert state["currency"] == "USD"
    assert state["theme"] == "light"

    store.set_locale("pt-BR")
    store.set_locale("en-US")
    store.apply_detected_preferences("pt-PT")
    assert store.get_state()["locale"] == "en-US"


def test_register_and_login_by_email_or_phone():
    store = AppStore()
    user = store.register_user("Ana", " Ana@Example.com ", "(11) 98888-7777", "segredo1")
    assert user["email"] == "ana@example.com"
    assert user["phone"] == "11988887777"
    assert store.current_user_id() == user["id"]

    store.logout()
    assert store.get_current_user() is None
    with pytest.raises(NotAuthenticatedError):
        store.require_user_id()

    assert store.login("ANA@example.com", "segredo1")["id"] == user["id"]
    store.logout()
    assert store.login("11 98888-7777", "segredo1")["id"] == user["id"]
    assert store.get_current_user()["name"] == "Ana"


def test_register_duplicate_email_does_not_mutate_users():
    store = AppStore()
    store.register_user("Ana", "ana@example.com", "11988887777", "segredo1")
    users_before = list(store.get_state()["users"])
    with pytest.raises(DuplicateIdentityError) as exc:
        store.register_user("Outra", "ANA@example.com", "11911112222", "segredo2")
    assert exc.value.code == "duplicate_email"
    assert store.get_state()["users"] == users_before


def test_register_duplicate_phone():
    store = AppStore()
    store.register_user("Ana", "ana@example.com", "11988887777", "segredo1")
    with pytest.raises(DuplicateIdentityError) as exc:
        store.register_user("Bia", "bia@example.com", "(11) 98888-7777", "segredo2")
    assert exc.value.code == "duplicate_phone"


def test_login_failures():
    store = AppStore()
    store.register_user("Ana", "ana@example.com", "11988887777", "segredo1")
    store.logout()
    with pytest.raises(UserNotFoundError):
        store.login("nobody@example.com", "segredo1")
    with pytest.raises(InvalidCredentialsError):
        store.login("ana@example.com", "errada")
    assert store.current_user_id() is None


def test_public_user_hides_password_material():
    store = AppStore()
    user = store.register_user("Ana", "ana@example.com", "11988887777", "segredo1")
    exposed = public_user(user)
    assert "pass_hash" not in exposed
    assert user["pass_hash"].startswith("$2")
    assert "pass_hash" in user


def test_round_trip_through_persistence():
    persistence = MemoryPersistence()
    store = AppStore(persistence=persistence)
    store.register_user("Ana", "ana@example.com", "11988887777", "segredo1")
    store.set_locale("en-US")
    store.set_clients([{"id": "c1", "name": "Cliente"}])
    store.patch_settings({"tax_percent": 5})

    reloaded = AppStore(persistence=MemoryPersistence(persistence.blob))
    assert reloaded.get_state() == store.get_state()
    assert reloaded.login("ana@example.com", "segredo1")["name"] == "Ana"


def test_json_file_persistence(tmp_path):
    path = tmp_path / "state" / "store.json"
    store = AppStore(persistence=JsonFilePersistence(path))
    store.set_theme("light")

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert data[STORAGE_KEY]["theme"] == "light"

    reloaded = AppStore(persistence=JsonFilePersistence(path))
    assert reloaded.get_state()["theme"] == "light"
    assert "dark" not in reloaded.root_classes


class BrokenPersistence:
    def load(self):
        raise OSError("disk gone")

    def save(self, state):
        raise OSError("disk full")


def test_persistence_failures_are_swallowed():
    store = AppStore(persistence=BrokenPersistence())
    assert store.get_state()["locale"] == "pt-BR"
    calls = []
    store.subscribe(lambda: calls.append(1))
    store.set_locale("en-US")
    assert store.get_state()["locale"] == "en-US"
    assert calls == [1]


def test_concurrent_registrations_with_same_email_keep_one_user(monkeypatch):
    from grafica.services import store as store_module

    real_hash = store_module.hash_password

    def slow_hash(password):
        time.sleep(0.05)
        return real_hash(password)

    monkeypatch.setattr(store_module, "hash_password", slow_hash)
    store = AppStore()
    barrier = threading.Barrier(2)
    errors = []

    def sign_up(phone):
        barrier.wait()
        try:
            store.register_user("Ana", "ana@example.com", phone, "segredo1")
        except DuplicateIdentityError as e:
            errors.append(e.code)

    threads = [threading.Thread(target=sign_up, args=(p,)) for p in ("11988887777", "11911112222")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.get_state()["users"]) == 1
    assert errors == ["duplicate_email"]


def test_authenticate_leaves_session_pointer_alone():
    store = AppStore()
    user = store.register_user("Ana", "ana@example.com", "11988887777", "segredo1", sign_in=False)
    assert store.current_user_id() is None
    assert store.authenticate("ana@example.com", "segredo1")["id"] == user["id"]
    assert store.current_user_id() is None
    assert store.find_user(user["id"])["name"] == "Ana"
