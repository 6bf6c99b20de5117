"""
Settings service for clinic scheduling configuration.

Working hours, slot interval and default duration live in the clinic's
validated settings JSON; per-treatment durations come from the treatment
catalog.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from core.exceptions import ClinicNotFoundError
from models import Clinic, Treatment
from models.clinic import SchedulingSettings

logger = logging.getLogger(__name__)


class SettingsService:
    """
    Service class for settings operations.

    Provides centralized access to clinic scheduling settings with validation.
    """

    @staticmethod
    def get_clinic(db: Session, clinic_id: int) -> Clinic:
        """
        Raises:
            ClinicNotFoundError: If clinic not found
        """
        clinic = db.query(Clinic).filter(Clinic.id == clinic_id).first()
        if not clinic:
            raise ClinicNotFoundError(clinic_id)
        return clinic

    @staticmethod
    def get_scheduling_settings(db: Session, clinic_id: int) -> SchedulingSettings:
        """
        Get validated scheduling settings.

        Args:
            db: Database session
            clinic_id: Clinic ID

        Returns:
            SchedulingSettings, with defaults for anything the clinic never saved

        Raises:
            ClinicNotFoundError: If clinic not found
        """
        clinic = SettingsService.get_clinic(db, clinic_id)
        return clinic.get_validated_settings().scheduling_settings

    @staticmethod
    def get_treatment_duration(
        db: Session,
        clinic_id: int,
        treatment_id: Optional[int],
        default_minutes: int
    ) -> int:
        """
        Duration of a treatment in minutes.

        Unknown or deleted treatments fall back to `default_minutes`.
        """
        if treatment_id is None:
            return default_minutes

        treatment = db.query(Treatment).filter(
            Treatment.id == treatment_id,
            Treatment.clinic_id == clinic_id,
            Treatment.is_deleted == False  # noqa: E712
        ).first()

        if not treatment:
            logger.warning(f"Treatment {treatment_id} not found for clinic {clinic_id}, using default duration")
            return default_minutes
        return treatment.duration_minutes

