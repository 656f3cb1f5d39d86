# Overview: Pytest coverage for concurrent ledger and session access.

"""
Concurrency Tests

Each worker thread pushes its own app context (and therefore its own
SQLAlchemy session and connection) against the shared SQLite file, the way
separate requests or registers would.

Coverage:
- N simultaneous get_or_create_session calls on one register -> one session
- M registers hit simultaneously -> exactly M sessions with M distinct numbers
- The open-session index rejects a raw duplicate insert
- Concurrent decrements never oversell and keep the ledger consistent
- Opposite-direction transfers conserve stock without deadlocking
- Racing creates of one SKU yield one product; the rest get ConflictError
"""

import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError
from stockledger.extensions import db
from stockledger.models import Inventory, PosSession, Product
from stockledger.models.sessions import SESSION_STATUS_OPEN
from stockledger.services import products_service, session_service, stock_ledger, transfer_service
from stockledger.time_utils import date_stamp
from stockledger.validation import ConflictError, InsufficientStock


def _run_workers(app, targets):
    """Start every target at once (barrier) and wait for all of them."""
    results = []
    errors = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(targets))

    def runner(target):
        with app.app_context():
            try:
                barrier.wait(timeout=30)
                value = target()
                with lock:
                    results.append(value)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=runner, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=120)

    return results, errors


class TestSessionConcurrency:
    @pytest.mark.parametrize("workers", [10, 50])
    def test_same_register_yields_one_session(self, app, db_session, vendor, primary_location, workers):
        vendor_id, location_id = vendor.id, primary_location.id
        db_session.commit()

        def open_register():
            return session_service.get_or_create_session(
                location_id=location_id,
                register_id="REG-RACE",
                user_id="cashier",
                vendor_id=vendor_id,
                opening_cash=100,
            )

        results, errors = _run_workers(app, [open_register] * workers)

        assert errors == []
        assert len(results) == workers
        assert len({r["id"] for r in results}) == 1
        assert sum(1 for r in results if r["was_created"]) == 1

        db_session.expire_all()
        assert db_session.query(PosSession).filter_by(
            register_id="REG-RACE", status=SESSION_STATUS_OPEN,
        ).count() == 1

    def test_multiple_registers_yield_one_session_each(self, app, db_session, vendor, primary_location):
        vendor_id, location_id = vendor.id, primary_location.id
        db_session.commit()

        def opener(register_id):
            def _call():
                return session_service.get_or_create_session(
                    location_id=location_id,
                    register_id=register_id,
                    user_id="cashier",
                    vendor_id=vendor_id,
                )
            return _call

        registers = ["REG-A", "REG-B", "REG-C"]
        targets = [opener(r) for r in registers for _ in range(5)]
        results, errors = _run_workers(app, targets)

        assert errors == []
        by_register = {}
        for r in results:
            by_register.setdefault(r["register_id"], set()).add(r["id"])

        assert sorted(by_register) == registers
        assert all(len(ids) == 1 for ids in by_register.values())
        assert len({next(iter(ids)) for ids in by_register.values()}) == 3
        assert len({r["session_number"] for r in results}) == 3

        db_session.expire_all()
        assert db_session.query(PosSession).count() == 3

    def test_registers_at_one_location_get_distinct_numbers(self, app, db_session, vendor, primary_location):
        vendor_id, location_id = vendor.id, primary_location.id
        db_session.commit()

        def opener(register_id):
            def _call():
                return session_service.get_or_create_session(
                    location_id=location_id,
                    register_id=register_id,
                    user_id="cashier",
                    vendor_id=vendor_id,
                )
            return _call

        results, errors = _run_workers(app, [opener(f"R{n}") for n in range(6)])

        assert errors == []
        assert all(r["was_created"] for r in results)
        numbers = sorted(r["session_number"] for r in results)
        prefix = f"S{date_stamp()}-"
        assert numbers == [f"{prefix}{n:04d}" for n in range(1, 7)]

    def test_sequential_calls_reuse_session(self, db_session, vendor, primary_location):
        ids = set()
        for _ in range(20):
            result = session_service.get_or_create_session(
                location_id=primary_location.id,
                register_id="REG-SEQ",
                user_id="cashier",
                vendor_id=vendor.id,
            )
            ids.add(result["id"])

        assert len(ids) == 1
        assert db_session.query(PosSession).count() == 1

    def test_duplicate_open_insert_is_rejected_by_index(self, db_session, vendor, primary_location):
        session_service.get_or_create_session(
            location_id=primary_location.id, register_id="REG-DUP", user_id="u", vendor_id=vendor.id,
        )

        db_session.add(PosSession(
            session_number="S-MANUAL",
            register_id="REG-DUP",
            location_id=primary_location.id,
            vendor_id=vendor.id,
            user_id="u",
            status=SESSION_STATUS_OPEN,
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestProductConcurrency:
    def test_same_sku_creates_conflict_cleanly(self, app, db_session, vendor, primary_location):
        vendor_id = vendor.id
        db_session.commit()

        def create(n):
            def _call():
                return products_service.create_product(
                    vendor_id=vendor_id,
                    product_data={"name": f"Racer {n}", "sku": "RACE-1"},
                    initial_stock=5,
                )
            return _call

        results, errors = _run_workers(app, [create(n) for n in range(8)])

        assert len(results) == 1
        assert len(errors) == 7
        assert all(isinstance(e, ConflictError) for e in errors)

        db_session.expire_all()
        assert db_session.query(Product).filter_by(vendor_id=vendor_id, sku="RACE-1").count() == 1
        assert db_session.query(Inventory).count() == 1


class TestInventoryConcurrency:
    def test_concurrent_decrements_never_oversell(self, app, db_session, vendor, primary_location):
        created = products_service.create_product(
            vendor_id=vendor.id,
            product_data={"name": "Hot Item"},
            initial_stock=8,
        )
        inventory_id = created["inventory_id"]
        db_session.commit()

        def sell():
            return stock_ledger.decrement_inventory(
                inventory_id=inventory_id, quantity=1, reference_type="sale",
            ).id

        results, errors = _run_workers(app, [sell] * 10)

        assert len(results) == 8
        assert len(errors) == 2
        assert all(isinstance(e, InsufficientStock) for e in errors)

        db_session.expire_all()
        assert db_session.get(Inventory, inventory_id).quantity == 0
        report = stock_ledger.verify_ledger(inventory_id)
        assert report["consistent"]
        assert report["movement_count"] == 9

    def test_opposite_transfers_conserve_stock(self, app, db_session, vendor, primary_location, second_location):
        created = products_service.create_product(
            vendor_id=vendor.id,
            product_data={"name": "Shuttle"},
            initial_stock=20,
        )
        product_id = created["product_id"]
        vendor_id, a_id, b_id = vendor.id, primary_location.id, second_location.id
        transfer_service.transfer_inventory(
            product_id=product_id, from_location_id=a_id, to_location_id=b_id, quantity=10, vendor_id=vendor_id,
        )
        db_session.commit()

        def move(src, dst):
            def _call():
                return transfer_service.transfer_inventory(
                    product_id=product_id, from_location_id=src, to_location_id=dst, quantity=1, vendor_id=vendor_id,
                )
            return _call

        targets = [move(a_id, b_id) for _ in range(5)] + [move(b_id, a_id) for _ in range(5)]
        results, errors = _run_workers(app, targets)

        assert errors == []
        assert all(r["success"] for r in results)

        db_session.expire_all()
        rows = db_session.query(Inventory).filter_by(product_id=product_id).all()
        assert sum((r.quantity for r in rows), Decimal("0")) == Decimal("20")
        assert {r.location_id: r.quantity for r in rows} == {a_id: Decimal("10"), b_id: Decimal("10")}
        for row in rows:
            assert stock_ledger.verify_ledger(row.id)["consistent"]
