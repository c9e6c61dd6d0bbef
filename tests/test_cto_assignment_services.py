"""Tests for customer to CTO assignment."""

import uuid

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import func
from sqlalchemy.dialects import postgresql

from app.models.network import Cto, CtoPortAssignment
from app.services.network import assignments
from app.services.network import capacity_ledger, cto_assignments
from app.services.network.exceptions import (
    CapacityExceeded,
    InvalidCoordinate,
    TenantMismatch,
)


def _fill(db_session, tenant_id, cto):
    for _ in range(cto.total_ports):
        capacity_ledger.reserve_port(db_session, tenant_id, cto.id, customer_id=uuid.uuid4())


def _assert_ledger_consistent(db_session, tenant_id):
    used = (
        db_session.query(func.coalesce(func.sum(Cto.used_ports), 0))
        .filter(Cto.tenant_id == tenant_id)
        .scalar()
    )
    linked = (
        db_session.query(func.count(CtoPortAssignment.id))
        .filter(CtoPortAssignment.tenant_id == tenant_id)
        .filter(CtoPortAssignment.customer_id.isnot(None))
        .scalar()
    )
    assert used == linked


def _outcome(outcome: str) -> float:
    return REGISTRY.get_sample_value("cto_assignments_total", {"outcome": outcome}) or 0.0


def test_nearest_available_skips_full_cto(db_session, tenant_id, make_cto):
    full = make_cto("full", latitude=0, longitude=0, total_ports=4)
    free = make_cto("free", latitude=0, longitude=0.001, total_ports=4)
    _fill(db_session, tenant_id, full)

    candidate = cto_assignments.find_nearest_available(db_session, tenant_id, 0, 0)

    assert candidate.cto.id == free.id
    assert candidate.distance_m == pytest.approx(111.19, abs=0.01)


def test_nearest_available_without_ctos_is_none(db_session, tenant_id):
    assert cto_assignments.find_nearest_available(db_session, tenant_id, 12.5, -3.25) is None


def test_nearest_available_does_not_reserve(db_session, tenant_id, make_cto):
    cto = make_cto(latitude=0, longitude=0, total_ports=1)
    cto_assignments.find_nearest_available(db_session, tenant_id, 0, 0)
    cto_assignments.find_nearest_available(db_session, tenant_id, 0, 0)
    assert cto.used_ports == 0


def test_nearest_available_ignores_ctos_beyond_search_radius(db_session, tenant_id, make_cto):
    make_cto(latitude=1.0, longitude=0)
    assert cto_assignments.find_nearest_available(db_session, tenant_id, 0, 0) is None


def test_nearest_available_rejects_invalid_coordinate(db_session, tenant_id):
    with pytest.raises(InvalidCoordinate):
        cto_assignments.find_nearest_available(db_session, tenant_id, 120, 0)


def test_list_candidates_includes_full_ctos(db_session, tenant_id, make_cto):
    full = make_cto("full", latitude=0, longitude=0, total_ports=1)
    make_cto("free", latitude=0, longitude=0.002)
    _fill(db_session, tenant_id, full)

    candidates = cto_assignments.list_candidates(db_session, tenant_id, 0, 0)

    assert [candidate.cto.name for candidate in candidates] == ["full", "free"]
    assert not capacity_ledger.has_free_capacity(candidates[0].cto)


def test_list_candidates_honors_limit(db_session, tenant_id, make_cto):
    for index in range(4):
        make_cto(f"cto-{index}", latitude=0, longitude=0.001 * (index + 1))
    candidates = cto_assignments.list_candidates(db_session, tenant_id, 0, 0, limit=2)
    assert [candidate.cto.name for candidate in candidates] == ["cto-0", "cto-1"]


def test_assign_customer_reserves_nearest_port(db_session, tenant_id, make_cto):
    near = make_cto("near", latitude=0, longitude=0.001)
    make_cto("far", latitude=0, longitude=0.01)
    customer_id = uuid.uuid4()
    before = _outcome("assigned")

    assignment = cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0, 0)

    assert assignment.cto.id == near.id
    assert assignment.port_number == 1
    assert assignment.customer_id == customer_id
    assert near.used_ports == 1
    assert _outcome("assigned") == before + 1

    stored = cto_assignments.get_assignment(db_session, tenant_id, customer_id)
    assert stored.cto.id == near.id
    assert stored.port_number == 1
    _assert_ledger_consistent(db_session, tenant_id)


def test_assign_customer_moves_past_full_cto(db_session, tenant_id, make_cto):
    full = make_cto("full", latitude=0, longitude=0, total_ports=2)
    spare = make_cto("spare", latitude=0, longitude=0.001)
    _fill(db_session, tenant_id, full)

    assignment = cto_assignments.assign_customer(db_session, tenant_id, uuid.uuid4(), 0, 0)

    assert assignment.cto.id == spare.id
    assert full.used_ports == 2
    _assert_ledger_consistent(db_session, tenant_id)


def test_assign_customer_returns_none_when_everything_is_full(db_session, tenant_id, make_cto):
    only = make_cto(latitude=0, longitude=0, total_ports=1)
    first = cto_assignments.assign_customer(db_session, tenant_id, uuid.uuid4(), 0, 0)
    assert first.port_number == 1

    assert cto_assignments.assign_customer(db_session, tenant_id, uuid.uuid4(), 0, 0) is None
    assert only.used_ports == 1
    _assert_ledger_consistent(db_session, tenant_id)


def test_reassign_moves_customer_and_frees_old_port(db_session, tenant_id, make_cto):
    old = make_cto("old", latitude=0, longitude=0)
    new = make_cto("new", latitude=0.1, longitude=0)
    customer_id = uuid.uuid4()
    cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0, 0)

    moved = cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0.1, 0)

    assert moved.cto.id == new.id
    assert old.used_ports == 0
    assert new.used_ports == 1
    assert cto_assignments.get_assignment(db_session, tenant_id, customer_id).cto.id == new.id
    _assert_ledger_consistent(db_session, tenant_id)


def test_reassign_to_current_cto_keeps_existing_port(db_session, tenant_id, make_cto):
    cto = make_cto(latitude=0, longitude=0)
    customer_id = uuid.uuid4()
    cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0, 0)
    cto_assignments.assign_customer(db_session, tenant_id, uuid.uuid4(), 0, 0)

    again = cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0, 0.0001)

    assert again.cto.id == cto.id
    assert again.port_number == 1
    assert cto.used_ports == 2
    _assert_ledger_consistent(db_session, tenant_id)


def test_reassign_stays_when_nearer_cto_is_full(db_session, tenant_id, make_cto):
    current = make_cto("current", latitude=0, longitude=0.002)
    nearer = make_cto("nearer", latitude=0, longitude=0, total_ports=1)
    customer_id = uuid.uuid4()
    _fill(db_session, tenant_id, nearer)
    cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0, 0)

    again = cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0, 0)

    assert again.cto.id == current.id
    assert current.used_ports == 1


def test_reassign_without_new_cto_keeps_old_assignment(db_session, tenant_id, make_cto):
    home = make_cto("home", latitude=0, longitude=0)
    remote = make_cto("remote", latitude=10, longitude=10, total_ports=1)
    _fill(db_session, tenant_id, remote)
    customer_id = uuid.uuid4()
    cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0, 0)

    assert cto_assignments.assign_customer(db_session, tenant_id, customer_id, 10, 10) is None

    kept = cto_assignments.get_assignment(db_session, tenant_id, customer_id)
    assert kept.cto.id == home.id
    assert home.used_ports == 1
    _assert_ledger_consistent(db_session, tenant_id)


def test_associate_customer_to_chosen_cto(db_session, tenant_id, make_cto):
    make_cto("nearest", latitude=0, longitude=0)
    chosen = make_cto("chosen", latitude=0, longitude=0.01)
    customer_id = uuid.uuid4()

    assignment = cto_assignments.associate_customer(
        db_session, tenant_id, customer_id, str(chosen.id)
    )

    assert assignment.cto.id == chosen.id
    assert assignment.port_number == 1
    assert chosen.used_ports == 1


def test_associate_customer_moves_existing_assignment(db_session, tenant_id, make_cto):
    first = make_cto("first", latitude=0, longitude=0)
    second = make_cto("second", latitude=0, longitude=0.01)
    customer_id = uuid.uuid4()
    cto_assignments.associate_customer(db_session, tenant_id, customer_id, first.id)

    cto_assignments.associate_customer(db_session, tenant_id, customer_id, second.id)

    assert first.used_ports == 0
    assert second.used_ports == 1
    _assert_ledger_consistent(db_session, tenant_id)


def test_associate_customer_to_full_cto_raises(db_session, tenant_id, make_cto):
    full = make_cto(latitude=0, longitude=0, total_ports=1)
    _fill(db_session, tenant_id, full)

    with pytest.raises(CapacityExceeded):
        cto_assignments.associate_customer(db_session, tenant_id, uuid.uuid4(), full.id)
    assert full.used_ports == 1


def test_associate_customer_rejects_other_tenant_cto(
    db_session, tenant_id, other_tenant_id, make_cto
):
    foreign = make_cto(tenant=other_tenant_id)
    with pytest.raises(TenantMismatch):
        cto_assignments.associate_customer(db_session, tenant_id, uuid.uuid4(), foreign.id)
    assert foreign.used_ports == 0


def test_release_customer_frees_port(db_session, tenant_id, make_cto):
    cto = make_cto(latitude=0, longitude=0)
    customer_id = uuid.uuid4()
    cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0, 0)

    assert cto_assignments.release_customer(db_session, tenant_id, customer_id) is True

    assert cto.used_ports == 0
    assert cto_assignments.get_assignment(db_session, tenant_id, customer_id) is None
    _assert_ledger_consistent(db_session, tenant_id)


def test_release_unassigned_customer_is_a_no_op(db_session, tenant_id):
    assert cto_assignments.release_customer(db_session, tenant_id, uuid.uuid4()) is False


def test_assignments_are_tenant_scoped(db_session, tenant_id, other_tenant_id, make_cto):
    make_cto(latitude=0, longitude=0)
    customer_id = uuid.uuid4()
    cto_assignments.assign_customer(db_session, tenant_id, customer_id, 0, 0)

    assert cto_assignments.get_assignment(db_session, other_tenant_id, customer_id) is None
    assert cto_assignments.release_customer(db_session, other_tenant_id, customer_id) is False
    assert cto_assignments.assign_customer(db_session, other_tenant_id, customer_id, 0, 0) is None


def test_move_locks_both_ctos_in_id_order(db_session, tenant_id, make_cto, monkeypatch):
    first = make_cto("first", latitude=0, longitude=0)
    second = make_cto("second", latitude=0, longitude=0.01)
    customer_id = uuid.uuid4()
    cto_assignments.associate_customer(db_session, tenant_id, customer_id, first.id)

    events = []
    lock_ctos = assignments._lock_ctos
    reserve_port = capacity_ledger.reserve_port
    release_port = capacity_ledger.release_port

    def recording_lock(db, cto_ids):
        locked = lock_ctos(db, cto_ids)
        events.append(("lock", locked))
        return locked

    def recording_reserve(*args, **kwargs):
        events.append(("reserve", args[2]))
        return reserve_port(*args, **kwargs)

    def recording_release(*args, **kwargs):
        events.append(("release", args[2]))
        return release_port(*args, **kwargs)

    monkeypatch.setattr(assignments, "_lock_ctos", recording_lock)
    monkeypatch.setattr(capacity_ledger, "reserve_port", recording_reserve)
    monkeypatch.setattr(capacity_ledger, "release_port", recording_release)

    cto_assignments.associate_customer(db_session, tenant_id, customer_id, second.id)
    forward = list(events)
    events.clear()
    cto_assignments.associate_customer(db_session, tenant_id, customer_id, first.id)
    backward = list(events)

    expected_order = sorted([first.id, second.id])
    assert forward == [
        ("lock", expected_order),
        ("reserve", second.id),
        ("release", first.id),
    ]
    assert backward == [
        ("lock", expected_order),
        ("reserve", first.id),
        ("release", second.id),
    ]
    _assert_ledger_consistent(db_session, tenant_id)


def test_cto_lock_is_a_row_lock_on_postgres():
    statement = assignments._lock_statement(uuid.uuid4())
    sql = str(statement.compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE" in sql
    assert "ctos" in sql
