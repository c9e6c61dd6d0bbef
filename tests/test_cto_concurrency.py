"""Concurrent reservations against a file-backed database.

Each worker gets its own session and connection, so the conditional
UPDATE in the capacity ledger is what decides the race.
"""

import threading
import uuid

from sqlalchemy import func

from app.models.network import Cto, CtoPortAssignment
from app.schemas.network import CtoCreate
from app.services.network import capacity_ledger, cto_assignments, ctos
from app.services.network.exceptions import CapacityExceeded, InvalidPort


def _race(file_sessions, workers, target):
    barrier = threading.Barrier(workers)
    lock = threading.Lock()
    results = []
    errors = []

    def run(index):
        session = file_sessions()
        try:
            barrier.wait()
            outcome = target(session, index)
        except Exception as exc:  # surfaced by the caller's assertion
            with lock:
                errors.append(exc)
        else:
            with lock:
                results.append(outcome)
        finally:
            session.close()

    threads = [threading.Thread(target=run, args=(index,)) for index in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    assert errors == []
    return results


def _create_cto(file_sessions, tenant_id, name, total_ports, longitude=0.0):
    with file_sessions() as session:
        cto = ctos.create(
            session,
            tenant_id,
            CtoCreate(name=name, latitude=0, longitude=longitude, total_ports=total_ports),
        )
        return cto.id


def _used_ports(file_sessions, cto_id):
    with file_sessions() as session:
        return session.get(Cto, cto_id).used_ports


def test_parallel_reservations_never_oversubscribe(file_sessions, tenant_id):
    cto_id = _create_cto(file_sessions, tenant_id, "contested", total_ports=3)

    def reserve(session, _index):
        try:
            return capacity_ledger.reserve_port(session, tenant_id, cto_id)
        except CapacityExceeded:
            return None

    results = _race(file_sessions, 8, reserve)

    ports = sorted(port for port in results if port is not None)
    assert ports == [1, 2, 3]
    assert results.count(None) == 5
    assert _used_ports(file_sessions, cto_id) == 3


def test_last_port_goes_to_exactly_one_customer(file_sessions, tenant_id):
    cto_id = _create_cto(file_sessions, tenant_id, "single", total_ports=1)

    def assign(session, _index):
        return cto_assignments.assign_customer(session, tenant_id, uuid.uuid4(), 0, 0)

    results = _race(file_sessions, 2, assign)

    winners = [assignment for assignment in results if assignment is not None]
    assert len(winners) == 1
    assert winners[0].port_number == 1
    assert _used_ports(file_sessions, cto_id) == 1


def test_losers_spill_over_to_next_cto(file_sessions, tenant_id):
    near_id = _create_cto(file_sessions, tenant_id, "near", total_ports=2, longitude=0.001)
    far_id = _create_cto(file_sessions, tenant_id, "far", total_ports=10, longitude=0.002)

    def assign(session, _index):
        assignment = cto_assignments.assign_customer(session, tenant_id, uuid.uuid4(), 0, 0)
        return assignment.cto.id

    results = _race(file_sessions, 6, assign)

    assert results.count(near_id) == 2
    assert results.count(far_id) == 4
    with file_sessions() as session:
        used = session.query(func.sum(Cto.used_ports)).filter(Cto.tenant_id == tenant_id).scalar()
        linked = (
            session.query(func.count(CtoPortAssignment.id))
            .filter(CtoPortAssignment.tenant_id == tenant_id)
            .scalar()
        )
    assert used == linked == 6


def test_parallel_release_of_same_port(file_sessions, tenant_id):
    cto_id = _create_cto(file_sessions, tenant_id, "release", total_ports=2)
    with file_sessions() as session:
        port = capacity_ledger.reserve_port(session, tenant_id, cto_id)

    def release(session, _index):
        try:
            capacity_ledger.release_port(session, tenant_id, cto_id, port)
        except InvalidPort:
            return False
        return True

    results = _race(file_sessions, 4, release)

    assert results.count(True) == 1
    assert _used_ports(file_sessions, cto_id) == 0


def test_parallel_release_of_same_customer(file_sessions, tenant_id):
    cto_id = _create_cto(file_sessions, tenant_id, "release-customer", total_ports=2)

    for _ in range(5):
        customer_id = uuid.uuid4()
        with file_sessions() as session:
            capacity_ledger.reserve_port(session, tenant_id, cto_id, customer_id=customer_id)

        def release(session, _index, customer_id=customer_id):
            return cto_assignments.release_customer(session, tenant_id, customer_id)

        results = _race(file_sessions, 4, release)

        assert results.count(True) == 1
        assert results.count(False) == 3
        assert _used_ports(file_sessions, cto_id) == 0
