from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from rackdb.apps.inventory import models as inventory_models
from rackdb.apps.inventory import repository as inventory_repository
from rackdb.apps.inventory import services as inventory_services


def _entry(db, code, quantity, rack, bin, entered_by="Alice"):
    return inventory_services.record_entry(
        db,
        material_code=code,
        quantity=quantity,
        rack=rack,
        bin=bin,
        entered_by=entered_by,
    )


def _issue(db, code, quantity, rack, bin, issued_by="Bob"):
    return inventory_services.record_issue(
        db,
        material_code=code,
        quantity=quantity,
        rack=rack,
        bin=bin,
        issued_by=issued_by,
    )


@pytest.fixture()
def stocked(db_session):
    _entry(db_session, "MAT-001", 5, "A1", "01")
    _entry(db_session, "BOLT-7", 150, "A1", "02")
    _entry(db_session, "NUT-3", 100, "B3", "02")
    return db_session


def _codes(materials):
    return sorted(material.code for material in materials)


def test_search_without_term_returns_everything(stocked):
    assert _codes(inventory_services.list_materials(stocked)) == ["BOLT-7", "MAT-001", "NUT-3"]
    assert _codes(inventory_services.list_materials(stocked, search="   ")) == [
        "BOLT-7",
        "MAT-001",
        "NUT-3",
    ]


def test_search_matches_code_case_insensitively(stocked):
    assert _codes(inventory_services.list_materials(stocked, search="mat")) == ["MAT-001"]


def test_search_matches_composite_location(stocked):
    assert _codes(inventory_services.list_materials(stocked, search="A1-02")) == ["BOLT-7"]
    assert _codes(inventory_services.list_materials(stocked, search="a1-02")) == ["BOLT-7"]


def test_search_matches_rack_or_bin(stocked):
    assert _codes(inventory_services.list_materials(stocked, search="02")) == ["BOLT-7", "NUT-3"]
    assert _codes(inventory_services.list_materials(stocked, search="b3")) == ["NUT-3"]


def test_search_treats_wildcards_literally(db_session):
    _entry(db_session, "ABC", 1, "R1", "01")
    _entry(db_session, "A_C", 1, "R1", "01")
    _entry(db_session, "50%OFF", 1, "R1", "01")

    assert _codes(inventory_services.list_materials(db_session, search="a_c")) == ["A_C"]
    assert _codes(inventory_services.list_materials(db_session, search="%")) == ["50%OFF"]
    assert inventory_services.list_materials(db_session, search="\\") == []


def test_search_filters_by_rack_and_bin(stocked):
    assert _codes(inventory_services.list_materials(stocked, rack="a1")) == ["BOLT-7", "MAT-001"]
    assert _codes(inventory_services.list_materials(stocked, rack="A1", bin="01")) == ["MAT-001"]
    assert inventory_services.list_materials(stocked, search="nut", rack="A1") == []


def test_get_material_by_code(stocked):
    material = inventory_services.get_material(stocked, code=" bolt-7 ")
    assert material.quantity == 150

    with pytest.raises(inventory_services.NotFoundError) as excinfo:
        inventory_services.get_material(stocked, code="missing")
    assert excinfo.value.field == "code"
    assert "MISSING" in excinfo.value.message


def test_list_logs_newest_first_with_limit(stocked):
    _issue(stocked, "BOLT-7", 10, "A1", "02")

    logs = inventory_services.list_logs(stocked, limit=2)

    assert len(logs) == 2
    assert logs[0].material_code == "BOLT-7"
    assert logs[0].action == inventory_models.LogActionEnum.ISSUE
    assert logs[1].material_code == "NUT-3"


def test_stats_count_today_only(stocked):
    _issue(stocked, "BOLT-7", 10, "A1", "02")
    _issue(stocked, "NUT-3", 1, "B3", "02")
    now = datetime.now(timezone.utc)
    stocked.add(
        inventory_models.Log(
            material_code="OLD-1",
            action=inventory_models.LogActionEnum.ENTRY,
            quantity=9,
            rack="Z1",
            bin="01",
            entered_by="Night Shift",
            balance_qty=9,
            timestamp=inventory_repository.start_of_local_day(now) - timedelta(hours=1),
        )
    )
    stocked.commit()

    stats = inventory_services.get_stats(stocked, now=now)

    assert stats.total_materials == 3
    assert stats.entered_today == 3
    assert stats.issued_today == 2
    assert len(stats.recent_logs) == 6
    assert stats.recent_logs[0].material_code == "NUT-3"
    assert stats.recent_logs[0].balance_qty == 99


def test_stats_on_empty_store(db_session):
    stats = inventory_services.get_stats(db_session)

    assert stats.total_materials == 0
    assert stats.entered_today == 0
    assert stats.issued_today == 0
    assert stats.recent_logs == []


def test_stats_serialize_with_camel_case_keys(stocked):
    payload = inventory_services.get_stats(stocked).model_dump(by_alias=True)

    assert set(payload) == {"totalMaterials", "enteredToday", "issuedToday", "recentLogs"}
    assert "balanceQty" in payload["recentLogs"][0]
    assert "materialCode" in payload["recentLogs"][0]


def test_start_of_local_day_is_not_after_now():
    now = datetime.now(timezone.utc)
    start = inventory_repository.start_of_local_day(now)

    assert start.tzinfo is None
    assert start <= now.replace(tzinfo=None)
    assert now.replace(tzinfo=None) - start < timedelta(days=1, hours=1)


def test_low_stock_uses_threshold(stocked):
    assert [m.code for m in inventory_services.low_stock(stocked)] == ["MAT-001", "NUT-3"]
    assert [m.code for m in inventory_services.low_stock(stocked, threshold=10)] == ["MAT-001"]
    assert inventory_services.low_stock(stocked, threshold=0) == []


def test_location_summaries_group_by_rack_and_bin(stocked):
    _entry(stocked, "WASHER-1", 20, "A1", "01")

    summaries = inventory_services.location_summaries(stocked)

    assert [s.location for s in summaries] == ["A1-01", "A1-02", "B3-02"]
    first = summaries[0]
    assert first.total_quantity == 25
    assert first.material_count == 2
    assert sorted(first.materials) == ["MAT-001", "WASHER-1"]


def _touch(db, code, when):
    material = inventory_repository.find_by_code(db, code)
    material.last_updated = when
    db.commit()


def test_materials_report_ranges(db_session):
    now = datetime(2026, 6, 15, 12, 0)
    _entry(db_session, "RECENT", 1, "A1", "01")
    _entry(db_session, "SPRING", 1, "A1", "01")
    _entry(db_session, "WINTER", 1, "A1", "01")
    _entry(db_session, "ANCIENT", 1, "A1", "01")
    _touch(db_session, "RECENT", datetime(2026, 6, 1))
    _touch(db_session, "SPRING", datetime(2026, 4, 1))
    _touch(db_session, "WINTER", datetime(2025, 12, 1))
    _touch(db_session, "ANCIENT", datetime(2024, 5, 1))

    def report(range_key):
        return _codes(inventory_services.materials_report(db_session, range_key=range_key, now=now))

    assert report("30days") == ["RECENT"]
    assert report("3months") == ["RECENT", "SPRING"]
    assert report("5months") == ["RECENT", "SPRING"]
    assert report("8months") == ["RECENT", "SPRING", "WINTER"]
    assert report("year_2026") == ["RECENT", "SPRING"]
    assert report("year_2024") == ["ANCIENT", "RECENT", "SPRING", "WINTER"]
    assert report("all") == ["ANCIENT", "RECENT", "SPRING", "WINTER"]
    assert report("ALL") == ["ANCIENT", "RECENT", "SPRING", "WINTER"]


def test_materials_report_excludes_cutoff_instant(db_session):
    now = datetime(2026, 6, 15, 12, 0)
    _entry(db_session, "ON-CUTOFF", 1, "A1", "01")
    _entry(db_session, "NEW-YEAR", 1, "A1", "01")
    _entry(db_session, "JUST-AFTER", 1, "A1", "01")
    _touch(db_session, "ON-CUTOFF", now - timedelta(days=30))
    _touch(db_session, "NEW-YEAR", datetime(2026, 1, 1))
    _touch(db_session, "JUST-AFTER", now - timedelta(days=30) + timedelta(seconds=1))

    def report(range_key):
        return _codes(inventory_services.materials_report(db_session, range_key=range_key, now=now))

    assert report("30days") == ["JUST-AFTER"]
    assert report("year_2026") == ["JUST-AFTER", "ON-CUTOFF"]


@pytest.mark.parametrize("range_key", ["bogus", "year_", "year_abc", "12months"])
def test_materials_report_rejects_unknown_range(db_session, range_key):
    with pytest.raises(inventory_services.ValidationError) as excinfo:
        inventory_services.materials_report(db_session, range_key=range_key)
    assert excinfo.value.field == "range"


def test_months_before_clamps_day():
    assert inventory_services._months_before(datetime(2026, 3, 31), 1) == datetime(2026, 2, 28)
    assert inventory_services._months_before(datetime(2026, 1, 15), 3) == datetime(2025, 10, 15)


def test_bin_card_projects_running_ledger(stocked):
    _issue(stocked, "MAT-001", 2, "A1", "01", issued_by="Bob")
    _entry(stocked, "MAT-001", 10, "A1", "01", entered_by="Carol")

    rows = inventory_services.bin_card(stocked, code="mat-001")

    assert [(r.received_qty, r.issued_qty, r.balance_qty) for r in rows] == [
        (5, 0, 5),
        (0, 2, 3),
        (10, 0, 13),
    ]
    assert [r.person_name for r in rows] == ["Alice", "Bob", "Carol"]
    assert {r.bin_location for r in rows} == {"A1-01"}


def test_bin_card_unknown_material(db_session):
    with pytest.raises(inventory_services.NotFoundError):
        inventory_services.bin_card(db_session, code="NOPE")


def test_bin_card_survives_material_deletion(stocked):
    inventory_services.delete_material(stocked, code="MAT-001")

    rows = inventory_services.bin_card(stocked, code="MAT-001")

    assert len(rows) == 1
    assert rows[0].balance_qty == 5


def test_bin_card_for_material_without_logs(stocked):
    inventory_services.clear_logs(stocked)

    assert inventory_services.bin_card(stocked, code="BOLT-7") == []


def test_reset_inventory_zeroes_quantities_and_keeps_logs(stocked):
    assert inventory_services.reset_inventory(stocked) == 3

    assert all(m.quantity == 0 for m in inventory_services.list_materials(stocked))
    assert stocked.query(inventory_models.Log).count() == 3


def test_entry_after_reset_uses_fresh_row(stocked):
    inventory_services.reset_inventory(stocked)

    material = _entry(stocked, "BOLT-7", 4, "A1", "02")

    assert material.quantity == 4
    assert inventory_services.list_logs(stocked, limit=1)[0].balance_qty == 4


def test_clear_logs_keeps_materials(stocked):
    assert inventory_services.clear_logs(stocked) == 3

    assert inventory_services.list_logs(stocked) == []
    assert len(inventory_services.list_materials(stocked)) == 3
