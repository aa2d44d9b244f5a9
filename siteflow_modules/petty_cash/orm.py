"""
SQLAlchemy ORM persistence model for petty-cash claims.

Invariants enforced
-------------------
* ``amount`` is ``Decimal`` (Numeric(18, 4)).
* Status and review columns change only through
  ``PettyCashService.apply_transition``'s compare-and-swap UPDATE.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from siteflow_kernel.db.base import TrackedBase
from siteflow_kernel.db.guards import column_change_guard, declare_write_guards, refuse


class PettyCashEntryModel(TrackedBase):
    """Maps to ``PettyCashEntry`` in ``siteflow_modules.petty_cash.models``."""

    __tablename__ = "petty_cash_entries"

    __table_args__ = (
        Index("idx_petty_cash_user", "user_id"),
        Index("idx_petty_cash_status", "status"),
        Index("idx_petty_cash_created", "created_at"),
    )

    user_id: Mapped[str] = mapped_column(String(200), nullable=False)
    user_name: Mapped[str] = mapped_column(String(200), nullable=False)
    project_name: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_to: Mapped[str] = mapped_column(String(200), nullable=False)
    remarks: Mapped[str] = mapped_column(Text, nullable=False, default="")
    screenshot: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    pm_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    finance_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self):
        from siteflow_modules.petty_cash.models import PettyCashEntry, PettyCashStatus

        return PettyCashEntry(
            id=self.id,
            created_at=self.created_at,
            user_id=self.user_id,
            user_name=self.user_name,
            project_name=self.project_name,
            amount=self.amount,
            paid_to=self.paid_to,
            remarks=self.remarks,
            screenshot=self.screenshot,
            status=PettyCashStatus(self.status),
            version=self.version,
            pm_comments=self.pm_comments,
            finance_comments=self.finance_comments,
            payment_ref=self.payment_ref,
        )

    def __repr__(self) -> str:
        return f"<PettyCashEntryModel {self.user_name} {self.amount} [{self.status}]>"


declare_write_guards(
    PettyCashEntryModel,
    before_update=column_change_guard("PettyCashEntry", "PettyCashService.apply_transition"),
    before_delete=refuse("PettyCashEntry", "DELETE", "petty-cash entries are never deleted"),
)
