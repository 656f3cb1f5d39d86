# Overview: POS register session lifecycle and running totals.

"""
POS Session Lifecycle Invariants (authoritative)

- State machine per register: (none) -> open -> closed. Closed sessions are
  never reopened; the next get_or_create_session opens a new row.
- At most one open session per register_id, enforced by the partial unique
  index uq_pos_sessions_open_register.
- get_or_create_session is an idempotent join: callers that lose the insert
  race get the winner's row back (was_created=False), never an error.
- An existing open session is returned unchanged; a later caller cannot
  alter its opening_cash.
- session_number is unique per location (uq_pos_sessions_location_number).
  A collision means another register took that number first; the open is
  retried with a fresh count.
- Running totals only change while the session is open.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PosSession
from ..models.sessions import SESSION_STATUS_CLOSED, SESSION_STATUS_OPEN
from ..precision import add, non_negative, subtract
from ..time_utils import date_stamp, utcnow
from ..validation import NotFoundError, ValidationError
from . import guards
from .concurrency import RETRYABLE_ERRORS, lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CARD = "card"
PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_CARD)

TRANSACTION_WALK_IN = "walk_in_sales"
TRANSACTION_PICKUP = "pickup_orders_fulfilled"
TRANSACTION_TYPES = (TRANSACTION_WALK_IN, TRANSACTION_PICKUP)

# A session_number collision with another register is retried with a fresh count
SESSION_RETRY_ERRORS = RETRYABLE_ERRORS + (IntegrityError,)


def get_open_session(register_id: str) -> PosSession | None:
    return db.session.query(PosSession).filter_by(
        register_id=str(register_id),
        status=SESSION_STATUS_OPEN,
    ).first()


def _load_session(session_id: int, *, lock: bool = True) -> PosSession:
    query = db.session.query(PosSession).filter_by(id=session_id)
    if lock:
        query = lock_for_update(query)
    session = query.first()
    if session is None:
        raise NotFoundError(f"Session {session_id} not found")
    return session


def _next_session_number(location_id: int) -> str:
    """S{YYYYMMDD}-{NNNN}, numbered per location per UTC day."""
    prefix = f"S{date_stamp()}-"
    count = db.session.query(PosSession).filter(
        PosSession.location_id == location_id,
        PosSession.session_number.like(f"{prefix}%"),
    ).count()
    return f"{prefix}{count + 1:04d}"


def _session_payload(session: PosSession, was_created: bool) -> dict:
    return {
        "id": session.id,
        "session_number": session.session_number,
        "register_id": session.register_id,
        "location_id": session.location_id,
        "status": session.status,
        "opening_cash": session.opening_cash,
        "was_created": was_created,
    }


def get_or_create_session(
    *,
    location_id: int,
    register_id: str,
    user_id: str,
    vendor_id: int,
    opening_cash=0,
) -> dict:
    """
    Return the register's open session, opening one if none exists.

    The insert is guarded by the open-session unique index. Losing the race
    surfaces as IntegrityError; we roll back, re-select and return the
    winner's row. If no winner exists the conflict was on session_number,
    and the whole open is retried so the count is taken again.
    """
    if register_id is None or str(register_id).strip() == "":
        raise ValidationError("register_id is required")
    register_id = str(register_id).strip()
    opening = guards.require_non_negative_amount(opening_cash or 0, "opening_cash")

    def _op():
        existing = get_open_session(register_id)
        if existing is not None:
            return _session_payload(existing, False)

        location = guards.require_location(vendor_id, location_id)

        session = PosSession(
            session_number=_next_session_number(location.id),
            register_id=register_id,
            location_id=location.id,
            vendor_id=vendor_id,
            user_id=str(user_id),
            status=SESSION_STATUS_OPEN,
            opening_cash=opening,
        )
        db.session.add(session)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            winner = get_open_session(register_id)
            if winner is None:
                # No open row for this register: the session_number was taken
                logger.debug("Session number collision at location %s; renumbering", location.id)
                raise
            logger.debug(
                "Lost open-session race on register %s; joining session %s",
                register_id, winner.id,
            )
            return _session_payload(winner, False)

        logger.info(
            "Opened session %s (%s) on register %s at location %s",
            session.id, session.session_number, register_id, location.id,
        )
        return _session_payload(session, True)

    return run_with_retry(_op, retry_on=SESSION_RETRY_ERRORS)


def update_session_on_void(
    *,
    session_id: int,
    amount_to_subtract,
    payment_method: str | None = None,
) -> PosSession:
    """
    Back a voided sale out of total_sales (floored at 0).

    With payment_method the matching total_cash or total_card bucket is
    reduced too, so close_session's expected_cash drops the voided cash.
    Without it only total_sales moves.
    """
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    amount = guards.require_non_negative_amount(amount_to_subtract, "amount_to_subtract")

    def _op():
        session = guards.require_open_session(_load_session(session_id), session_id)
        session.total_sales = non_negative(subtract(session.total_sales, amount))
        if payment_method == PAYMENT_METHOD_CASH:
            session.total_cash = non_negative(subtract(session.total_cash, amount))
        elif payment_method == PAYMENT_METHOD_CARD:
            session.total_card = non_negative(subtract(session.total_card, amount))
        db.session.commit()
        return session

    return run_with_retry(_op)


def update_session_for_refund(*, session_id: int, refund_amount) -> PosSession:
    amount = guards.require_non_negative_amount(refund_amount, "refund_amount")

    def _op():
        session = guards.require_open_session(_load_session(session_id), session_id)
        session.total_refunds = add(session.total_refunds, amount)
        db.session.commit()
        return session

    return run_with_retry(_op)


def record_session_sale(
    *,
    session_id: int,
    amount,
    payment_method: str,
    transaction_type: str = TRANSACTION_WALK_IN,
) -> PosSession:
    """
    Add a completed sale to the session's running totals.

    payment_method picks total_cash or total_card; transaction_type picks
    the walk-in or pickup counter.
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"transaction_type must be one of: {', '.join(TRANSACTION_TYPES)}")
    amount = guards.require_non_negative_amount(amount)

    def _op():
        session = guards.require_open_session(_load_session(session_id), session_id)

        session.total_sales = add(session.total_sales, amount)
        session.total_transactions = (session.total_transactions or 0) + 1
        if payment_method == PAYMENT_METHOD_CASH:
            session.total_cash = add(session.total_cash, amount)
        else:
            session.total_card = add(session.total_card, amount)

        if transaction_type == TRANSACTION_WALK_IN:
            session.walk_in_sales = (session.walk_in_sales or 0) + 1
        else:
            session.pickup_orders_fulfilled = (session.pickup_orders_fulfilled or 0) + 1

        db.session.commit()
        return session

    return run_with_retry(_op)


def close_session(
    *,
    session_id: int,
    closing_cash,
    notes: str | None = None,
    closed_by_user_id: str | None = None,
) -> PosSession:
    """
    open -> closed. Computes expected cash and the drawer variance.

    expected_cash = opening_cash + total_cash
    cash_variance = closing_cash - expected_cash (negative means short)

    total_cash only reflects voids that were reported with
    payment_method="cash".
    """
    counted = guards.require_non_negative_amount(closing_cash, "closing_cash")

    def _op():
        session = guards.require_open_session(_load_session(session_id), session_id)

        expected: Decimal = add(session.opening_cash, session.total_cash)
        session.closing_cash = counted
        session.expected_cash = expected
        session.cash_variance = subtract(counted, expected)
        session.status = SESSION_STATUS_CLOSED
        session.closed_at = utcnow()
        session.closed_by_user_id = str(closed_by_user_id) if closed_by_user_id is not None else None
        session.notes = notes

        db.session.commit()

        logger.info(
            "Closed session %s (%s); variance %s",
            session.id, session.session_number, session.cash_variance,
        )
        return session

    return run_with_retry(_op)


def list_sessions(status: str | None = None, limit: int = 20) -> list[PosSession]:
    query = db.session.query(PosSession)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(PosSession.id.desc()).limit(limit).all()
