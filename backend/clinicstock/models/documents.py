from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

class Counter(db.Model):
    """
    Named, strictly increasing integer register.

    Prevent duplicate document numbers under concurrent writers. The value
    only ever moves through an atomic `value = value + 1` statement; gaps
    from rolled-back transactions are accepted.
    """
    __tablename__ = "counters"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_counters_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    # e.g. "restock-20260104"
    name = db.Column(db.String(128), nullable=False)
    value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "value": self.value,
            "updated_at": to_utc_z(self.updated_at),
        }
