"""Tests for commission rate versioning."""

import logging
from decimal import Decimal

import pytest

from dealroom.models import CommissionSetting
from dealroom.services import CommissionService
from dealroom.services.errors import ValidationError


def test_default_rate_when_table_is_empty(db_session, caplog) -> None:
    service = CommissionService(db_session)
    with caplog.at_level(logging.WARNING, logger="dealroom.services.commission"):
        assert service.get_current_commission_percentage() == Decimal("10")
    assert "using default" in caplog.text


def test_update_deactivates_previous_rate(db_session) -> None:
    service = CommissionService(db_session)
    first = service.update_commission(12)
    second = service.update_commission("15.5")

    db_session.refresh(first)
    assert first.is_active is False
    assert second.is_active is True
    assert service.get_current_commission_percentage() == Decimal("15.5")
    assert db_session.query(CommissionSetting).filter_by(is_active=True).count() == 1


@pytest.mark.parametrize("value", [-1, 100.01, "abc", None, "NaN"])
def test_rejects_out_of_range_rates(db_session, value) -> None:
    with pytest.raises(ValidationError):
        CommissionService(db_session).update_commission(value)
    assert db_session.query(CommissionSetting).count() == 0


def test_history_is_newest_first_and_paged(db_session) -> None:
    service = CommissionService(db_session)
    for pct in (5, 8, 11):
        service.update_commission(pct)

    rows, total = service.commission_history(limit=2)
    assert total == 3
    assert [row.commission_percentage for row in rows] == [Decimal("11"), Decimal("8")]

    rows, _ = service.commission_history(limit=2, offset=2)
    assert [row.commission_percentage for row in rows] == [Decimal("5")]
