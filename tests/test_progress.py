from pathlib import Path

import pytest

from hazcomtrainer.models import CertificatePayload
from hazcomtrainer.progress import SCHEMA_VERSION, Database, EmployeeDirectory, KeyValueStore


def test_migrations_set_user_version(db: Database) -> None:
    version = db.connection.execute("PRAGMA user_version").fetchone()[0]
    applied = [row[0] for row in db.connection.execute("SELECT version FROM schema_migrations ORDER BY version")]
    assert version == SCHEMA_VERSION
    assert applied == list(range(1, SCHEMA_VERSION + 1))


def test_newer_schema_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "future.db"
    first = Database(path)
    first.connection.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")
    first.close()
    with pytest.raises(RuntimeError, match="newer than supported"):
        Database(path)


def test_key_value_store_roundtrip(kv_store: KeyValueStore) -> None:
    assert kv_store.get("k") is None
    kv_store.set("k", "one")
    kv_store.set("k", "two")
    assert kv_store.get("k") == "two"
    assert kv_store.delete("k") is True
    assert kv_store.get("k") is None


def test_data_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "training.db"
    first = Database(path)
    KeyValueStore(first).set("k", "v")
    EmployeeDirectory(first).add_employee("Dana", employee_id="e1")
    first.close()

    second = Database(path)
    try:
        assert KeyValueStore(second).get("k") == "v"
        employee = EmployeeDirectory(second).get("e1")
        assert employee is not None
        assert employee.name == "Dana"
    finally:
        second.close()


def test_add_and_list_employees(directory: EmployeeDirectory) -> None:
    directory.add_employee("Zoe", "Painter", pending_module_ids=["m1", "m2"], employee_id="z")
    created = directory.add_employee("  Abe  ")
    assert created.name == "Abe"
    assert len(created.id) == 12
    employees = directory.list_employees()
    assert [employee.name for employee in employees] == ["Abe", "Zoe"]
    zoe = directory.get("z")
    assert zoe is not None
    assert zoe.role == "Painter"
    assert zoe.pending_module_ids == ("m1", "m2")
    assert zoe.completed_module_ids == ()
    assert zoe.status == "pending"
    assert zoe.initial_training_date is None


def test_add_employee_requires_name(directory: EmployeeDirectory) -> None:
    with pytest.raises(ValueError):
        directory.add_employee("   ")


def test_update_overwrites_named_fields(directory: EmployeeDirectory) -> None:
    directory.add_employee("Dana", employee_id="e1", pending_module_ids=["m1"])
    updated = directory.update(
        "e1",
        completed_module_ids=["m1"],
        pending_module_ids=[],
        last_training_date="2026-03-14",
        initial_training_date="2026-03-01",
        status="current",
    )
    assert updated.completed_module_ids == ("m1",)
    assert updated.pending_module_ids == ()
    assert updated.last_training_date == "2026-03-14"
    assert updated.initial_training_date == "2026-03-01"
    assert updated.status == "current"
    assert updated.name == "Dana"


def test_update_rejects_unknown_fields(directory: EmployeeDirectory) -> None:
    directory.add_employee("Dana", employee_id="e1")
    with pytest.raises(ValueError, match="salary"):
        directory.update("e1", salary=10)
    with pytest.raises(ValueError, match="status"):
        directory.update("e1", status="retired")


def test_update_missing_employee_raises(directory: EmployeeDirectory) -> None:
    with pytest.raises(KeyError):
        directory.update("ghost", status="current")


def test_training_records_keep_order_and_payload(directory: EmployeeDirectory) -> None:
    directory.add_employee("Dana", employee_id="e1")
    directory.append_training_record("e1", "m1", "2026-03-14", 100)
    payload = CertificatePayload("Dana", "Mike's Auto Body", "auto-body", "2026-03-15")
    second = directory.append_training_record("e1", "m7", "2026-03-15", 100, certificate_payload=payload)

    records = directory.training_records("e1")
    assert [record.module_id for record in records] == ["m1", "m7"]
    assert records[0].certificate_payload is None
    assert records[1] == second
    assert records[1].certificate_payload == payload
    assert directory.training_records("other") == []
