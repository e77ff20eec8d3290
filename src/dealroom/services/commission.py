# src/dealroom/services/commission.py
"""Commission rate provider backed by the ``commission_setting`` table."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from dealroom.core.settings import settings
from dealroom.db.time import utcnow
from dealroom.models import CommissionSetting
from dealroom.services.errors import ValidationError

logger = logging.getLogger(__name__)


class CommissionRateProvider(Protocol):
    """Anything that can report the currently active commission percentage."""

    def get_current_commission_percentage(self) -> Decimal: ...


class CommissionService:
    """Reads and versions the platform commission rate."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def current_setting(self) -> CommissionSetting | None:
        """Return the newest active setting already in effect."""
        return self.db.scalars(
            select(CommissionSetting)
            .where(
                CommissionSetting.is_active.is_(True),
                CommissionSetting.effective_from <= utcnow(),
            )
            .order_by(CommissionSetting.effective_from.desc(), CommissionSetting.id.desc())
            .limit(1)
        ).first()

    def get_current_commission_percentage(self) -> Decimal:
        """Return the active percentage, or the configured default when none is set."""
        setting = self.current_setting()
        if setting is None:
            logger.warning(
                "No commission settings found, using default %s%%",
                settings.default_commission_percentage,
            )
            return settings.default_commission_percentage
        return Decimal(setting.commission_percentage)

    def update_commission(self, percentage: Any) -> CommissionSetting:
        """Deactivate the current rate and make ``percentage`` the active one.

        Raises:
            ValidationError: if ``percentage`` is not a number in [0, 100].
        """
        try:
            value = Decimal(str(percentage))
        except (InvalidOperation, ValueError) as err:
            raise ValidationError("Valid commission percentage is required") from err
        if not value.is_finite() or value < 0 or value > 100:
            raise ValidationError("Commission percentage must be between 0 and 100")

        self.db.execute(
            update(CommissionSetting)
            .where(CommissionSetting.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        setting = CommissionSetting(
            commission_percentage=value,
            is_active=True,
            effective_from=utcnow(),
        )
        self.db.add(setting)
        self.db.commit()
        self.db.refresh(setting)
        logger.info("Commission percentage updated to %s%%", value)
        return setting

    def commission_history(self, *, limit: int = 20, offset: int = 0) -> tuple[Sequence[CommissionSetting], int]:
        """Return one page of settings, newest first, plus the total count."""
        rows = self.db.scalars(
            select(CommissionSetting)
            .order_by(CommissionSetting.effective_from.desc(), CommissionSetting.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        total = self.db.scalar(select(func.count()).select_from(CommissionSetting)) or 0
        return rows, int(total)
