from __future__ import annotations

from ..extensions import db
from ..precision import format_price
from ..time_utils import to_utc_z
from .types import Money

SESSION_STATUS_OPEN = "open"
SESSION_STATUS_CLOSED = "closed"


class PosSession(db.Model):
    """
    Register shift (POS session).

    LIFECYCLE: (none) -> open -> closed. A closed session is never reopened;
    the next shift on the register is a new row with a new session_number.

    INVARIANT: at most one row with status='open' per register_id. Enforced
    by the partial unique index below, not by check-then-insert in
    application code, so concurrent openers on separate hosts cannot both
    succeed.

    session_number is unique per location (uq_pos_sessions_location_number);
    two registers numbering at once cannot both keep the same value.

    register_id and user_id are external identifiers (terminals and staff
    live outside this service).
    """
    __tablename__ = "pos_sessions"
    __table_args__ = (
        db.Index(
            "uq_pos_sessions_open_register",
            "register_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.UniqueConstraint("location_id", "session_number", name="uq_pos_sessions_location_number"),
        db.Index("ix_pos_sessions_vendor_status", "vendor_id", "status"),
        db.Index("ix_pos_sessions_location_opened", "location_id", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_number = db.Column(db.String(64), nullable=False, index=True)

    register_id = db.Column(db.String(64), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SESSION_STATUS_OPEN, index=True)

    # Cash tracking
    opening_cash = db.Column(Money(), nullable=False, default=0)
    closing_cash = db.Column(Money(), nullable=True)
    expected_cash = db.Column(Money(), nullable=True)
    cash_variance = db.Column(Money(), nullable=True)

    # Running totals, mutated by sale / void / refund settlement
    total_sales = db.Column(Money(), nullable=False, default=0)
    total_transactions = db.Column(db.Integer, nullable=False, default=0)
    total_cash = db.Column(Money(), nullable=False, default=0)
    total_card = db.Column(Money(), nullable=False, default=0)
    total_refunds = db.Column(Money(), nullable=False, default=0)
    walk_in_sales = db.Column(db.Integer, nullable=False, default=0)
    pickup_orders_fulfilled = db.Column(db.Integer, nullable=False, default=0)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by_user_id = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    location = db.relationship("Location")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PosSession id={self.id} number={self.session_number!r} register={self.register_id!r} status={self.status}>"

    def to_dict(self) -> dict:
        def money(value):
            return format_price(value) if value is not None else None

        return {
            "id": self.id,
            "session_number": self.session_number,
            "register_id": self.register_id,
            "location_id": self.location_id,
            "vendor_id": self.vendor_id,
            "user_id": self.user_id,
            "status": self.status,
            "opening_cash": money(self.opening_cash),
            "closing_cash": money(self.closing_cash),
            "expected_cash": money(self.expected_cash),
            "cash_variance": money(self.cash_variance),
            "total_sales": money(self.total_sales),
            "total_transactions": self.total_transactions,
            "total_cash": money(self.total_cash),
            "total_card": money(self.total_card),
            "total_refunds": money(self.total_refunds),
            "walk_in_sales": self.walk_in_sales,
            "pickup_orders_fulfilled": self.pickup_orders_fulfilled,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "closed_by_user_id": self.closed_by_user_id,
            "notes": self.notes,
            "version_id": self.version_id,
        }
