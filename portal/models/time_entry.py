from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.session import Base
from portal.models.common import IdMixin, TimestampMixin
from portal.models.invoice import Invoice
from portal.models.project import Project
from portal.models.user import User


class TimeEntry(Base, IdMixin, TimestampMixin):
    __tablename__ = "time_entries"

    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    billed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    invoice_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)

    project: Mapped[Project] = relationship(Project)
    user: Mapped[User] = relationship(User)
    invoice: Mapped[Invoice | None] = relationship(Invoice)

    def recalculate_duration(self) -> None:
        if self.start_time is None or self.end_time is None:
            return
        self.duration_seconds = int((self.end_time - self.start_time).total_seconds())
        self.hours = self.duration_seconds / 3600.0
