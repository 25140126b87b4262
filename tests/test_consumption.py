"""
Fabric consumption aggregation tests.

Tests:
1-5.   compute_consumption (worked example, defaults, first-fabric cost)
6-11.  recalculate_consumption against the database
12-15. run_transaction retry behaviour, including a real stale-version conflict
"""

import logging
from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm.exc import StaleDataError

from calcost import models
from calcost.consumption import compute_consumption, recalculate_consumption
from calcost.document_store import ProjectStore, TransactionConflict, run_transaction, touch_project
from calcost.schemas import FittingRecord, LineItem


def _base_garment(length=1.5, cost=20.0, extra_fabrics=()):
    fabrics = [{"name": "Algodón Jersey", "type": "Fabric", "quantity": length, "unit_cost": cost}]
    fabrics += [
        {"name": name, "type": "Fabric", "quantity": qty, "unit_cost": unit_cost}
        for name, qty, unit_cost in extra_fabrics
    ]
    return LineItem(
        id="shirt",
        name="Polera",
        material_items=fabrics + [{"name": "Botón", "type": "Accessory", "quantity": 4, "unit_cost": 0.5}],
    )


def _fittings(*sizes):
    return [FittingRecord(id=f"f{i}", person_name=f"P{i}", sizes={"shirt": s}) for i, s in enumerate(sizes)]


def _make_project(db, line_items, fitting_sizes=()):
    user = models.User(email="t@t.bo", password_hash="x")
    db.add(user)
    db.flush()
    project = models.Project(
        user_id=user.id, client_name="Colegio", project_name="Uniformes",
        quote_mode="batch", line_items=line_items,
    )
    db.add(project)
    db.flush()
    for i, size in enumerate(fitting_sizes):
        db.add(models.Fitting(
            project_id=project.id, user_id=user.id, person_name=f"P{i}", sizes={"shirt": size},
        ))
    db.commit()
    return project.id


# --- Pure aggregation ---

def test_worked_example():
    """1. 1.5 m at 20/m over S,M,L + XL + 14 → 4.58 m, 91.5."""
    totals = compute_consumption(_base_garment(), _fittings("S,M,L", "XL", "14"))
    assert totals.total_fabric_length == 4.58
    assert totals.total_fabric_cost == 91.5


def test_zero_fittings():
    """2. No fittings, no fabric."""
    totals = compute_consumption(_base_garment(), [])
    assert totals.total_fabric_length == 0
    assert totals.total_fabric_cost == 0


def test_missing_or_unknown_size_counts_as_pivot():
    """3. A fitting without a size for the garment, or with an unknown size, uses factor 1.0."""
    fittings = [
        FittingRecord(id="a", sizes={}),
        FittingRecord(id="b", sizes={"shirt": "XS"}),
    ]
    totals = compute_consumption(_base_garment(length=2, cost=10), fittings)
    assert totals.total_fabric_length == 4
    assert totals.total_fabric_cost == 40


def test_only_first_fabric_sets_the_rate():
    """4. Lengths of all fabrics add up; the first fabric's price is the rate."""
    garment = _base_garment(length=1, cost=20, extra_fabrics=[("Forro", 0.5, 100)])
    totals = compute_consumption(garment, _fittings("S,M,L"))
    assert totals.total_fabric_length == 1.5
    assert totals.total_fabric_cost == 30


def test_no_base_garment():
    """5. Nothing to aggregate without a base garment."""
    totals = compute_consumption(None, _fittings("XL"))
    assert totals.total_fabric_length == 0


# --- Stored aggregate ---

def test_recalculate_writes_totals(db, session_factory):
    """6. Totals are stored on the project."""
    garment = _base_garment().model_dump(mode="json")
    project_id = _make_project(db, [garment], ["S,M,L", "XL", "14"])

    totals = recalculate_consumption(project_id, session_factory)
    assert totals.total_fabric_length == 4.58

    db.expire_all()
    project = db.get(models.Project, project_id)
    assert project.total_fabric_length == 4.58
    assert project.total_fabric_cost == 91.5


def test_recalculate_counts_unconfirmed_fittings(db, session_factory):
    """7. Every fitting counts, confirmed or not."""
    garment = _base_garment(length=1, cost=1).model_dump(mode="json")
    project_id = _make_project(db, [garment], ["S,M,L", "S,M,L"])
    fitting = db.query(models.Fitting).first()
    fitting.confirmed = True
    db.commit()

    totals = recalculate_consumption(project_id, session_factory)
    assert totals.total_fabric_length == 2


def test_recalculate_without_line_items_resets_to_zero(db, session_factory, caplog):
    """8. A project with no garments gets zero totals; that is not a warning."""
    project_id = _make_project(db, [], ["XL"])
    project = db.get(models.Project, project_id)
    project.total_fabric_length = 9.0
    db.commit()

    with caplog.at_level(logging.INFO, logger="calcost.consumption"):
        totals = recalculate_consumption(project_id, session_factory)
    assert totals.total_fabric_length == 0
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    db.expire_all()
    assert db.get(models.Project, project_id).total_fabric_length == 0


def test_recalculate_missing_project_returns_none(session_factory):
    """9. Unknown project: logged, nothing written, no exception."""
    assert recalculate_consumption("does-not-exist", session_factory) is None


def test_recalculate_is_stable(db, session_factory):
    """10. Repeated runs without fitting changes give identical totals."""
    garment = _base_garment(length=1.37, cost=13.3).model_dump(mode="json")
    project_id = _make_project(db, [garment], ["XL", "XXL", "6 a 8", "S, M, L"])

    first = recalculate_consumption(project_id, session_factory)
    second = recalculate_consumption(project_id, session_factory)
    assert first == second


def test_recalculate_reads_in_batches(db, session_factory, monkeypatch):
    """11. Fittings beyond one batch are all counted."""
    from calcost.config import settings
    monkeypatch.setattr(settings, "FITTINGS_BATCH_SIZE", 2)

    garment = _base_garment(length=1, cost=1).model_dump(mode="json")
    project_id = _make_project(db, [garment], ["S,M,L"] * 5)

    totals = recalculate_consumption(project_id, session_factory)
    assert totals.total_fabric_length == 5


# --- Transactions ---

def test_run_transaction_retries_on_conflict():
    """12. A stale-version commit reruns the whole unit of work."""
    session = MagicMock()
    session.commit.side_effect = [StaleDataError("stale"), None]
    calls = []

    result = run_transaction(lambda s: calls.append(s) or "done", session_factory=lambda: session, max_attempts=3)

    assert result == "done"
    assert len(calls) == 2
    assert session.rollback.call_count == 1


def test_run_transaction_gives_up():
    """13. Persistent conflicts raise TransactionConflict."""
    session = MagicMock()
    session.commit.side_effect = StaleDataError("stale")

    with pytest.raises(TransactionConflict):
        run_transaction(lambda s: None, session_factory=lambda: session, max_attempts=2)
    assert session.commit.call_count == 2


def test_run_transaction_propagates_other_errors():
    """14. Other errors roll back and propagate without retry."""
    session = MagicMock()

    def boom(s):
        raise ValueError("bad")

    with pytest.raises(ValueError):
        run_transaction(boom, session_factory=lambda: session, max_attempts=3)
    session.rollback.assert_called_once()
    session.commit.assert_not_called()


def test_fitting_written_mid_aggregation_forces_rerun(db, session_factory, monkeypatch):
    """15. A fitting committed while totals are computed makes the run start over and count it."""
    garment = _base_garment(length=1, cost=10).model_dump(mode="json")
    project_id = _make_project(db, [garment], ["S,M,L"])

    read_fittings = ProjectStore.iter_fittings
    attempts = []

    def fittings_with_concurrent_write(store, pid):
        attempts.append(pid)
        if len(attempts) == 1:
            other = session_factory()
            try:
                project = other.get(models.Project, pid)
                other.add(models.Fitting(
                    project_id=pid, user_id=project.user_id, person_name="Tardío", sizes={"shirt": "XL"},
                ))
                touch_project(project)
                other.commit()
            finally:
                other.close()
        return read_fittings(store, pid)

    monkeypatch.setattr(ProjectStore, "iter_fittings", fittings_with_concurrent_write)

    totals = recalculate_consumption(project_id, session_factory)

    assert len(attempts) == 2
    assert totals.total_fabric_length == 2.1
    assert totals.total_fabric_cost == 21

    db.expire_all()
    project = db.get(models.Project, project_id)
    assert project.total_fabric_length == 2.1
    assert project.total_fabric_cost == 21
