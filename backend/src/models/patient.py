"""
Patient model.

A patient's lifecycle status is not stored here; it is derived from the
patient's bookings on every read (see services.status_derivation).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import AwareDateTime, Base


class Patient(Base):
    """Patient entity belonging to one clinic."""

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    clinic_id: Mapped[int] = mapped_column(ForeignKey("clinics.id"), index=True)

    full_name: Mapped[str] = mapped_column(String(255))

    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Added as an attendee when a meeting is mirrored to the external calendar."""

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(AwareDateTime, nullable=False)

    clinic = relationship("Clinic", back_populates="patients")

    bookings = relationship("Booking", back_populates="patient", order_by="Booking.scheduled_at")
