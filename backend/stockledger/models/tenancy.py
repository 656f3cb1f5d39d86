from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Vendor(db.Model):
    """
    Tenant root: every product, inventory row and POS session is scoped by
    vendor_id. Vendors are created by onboarding (outside this service) and
    are immutable here except for status.
    """
    __tablename__ = "vendors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class Location(db.Model):
    """
    A vendor's physical or virtual site (store, warehouse, van).

    INVARIANT: at most one location per vendor has is_primary=True.
    Product creation seeds inventory at the primary location and refuses to
    run without one. Read-only to the ledger.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.Index(
            "uq_locations_vendor_primary",
            "vendor_id",
            unique=True,
            sqlite_where=db.text("is_primary = 1"),
            postgresql_where=db.text("is_primary"),
        ),
        db.Index("ix_locations_vendor_active", "vendor_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vendor = db.relationship("Vendor", backref=db.backref("locations", lazy=True))

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r} vendor_id={self.vendor_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "name": self.name,
            "is_primary": self.is_primary,
            "is_active": self.is_active,
        }
