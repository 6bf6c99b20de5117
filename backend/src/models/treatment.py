"""
Treatment model.

Only the fields scheduling needs: a treatment's duration sets the length of
the slots offered for it.
"""

from sqlalchemy import String, ForeignKey, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Treatment(Base):
    __tablename__ = "treatments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    clinic_id: Mapped[int] = mapped_column(ForeignKey("clinics.id"), index=True)

    name: Mapped[str] = mapped_column(String(255))

    duration_minutes: Mapped[int] = mapped_column(Integer, default=30)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    clinic = relationship("Clinic", back_populates="treatments")
