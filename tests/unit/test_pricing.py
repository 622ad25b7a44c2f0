"""Unit tests for combo pricing and enum parsing helpers."""

from decimal import Decimal
from unittest.mock import patch

import pytest

from app.business.enums import BulkAction, OrderStatus, ScheduleType, parse_order_status
from app.services import pricing


@pytest.mark.unit
class TestComboPricing:

    def test_known_combos(self):
        assert pricing.price("Combo 25") == Decimal("25.00")
        assert pricing.price("Combo 35") == Decimal("35.00")
        assert pricing.is_known_combo("Combo 25")

    def test_unknown_combo_uses_default_price(self):
        assert pricing.price("Chef Special") == Decimal("45.00")
        assert not pricing.is_known_combo("Chef Special")

    def test_available_combos_in_policy_order(self):
        assert pricing.available_combos() == ["Combo 25", "Combo 35"]

    def test_missing_policy_file_falls_back(self):
        with patch.object(pricing, "_POLICY_PATH", "/nonexistent/combo_pricing.yaml"):
            pricing.clear_cache()
            assert pricing.price("Combo 35") == Decimal("35.00")
            assert pricing.default_price() == Decimal("45.00")


@pytest.mark.unit
class TestEnumParsing:

    @pytest.mark.parametrize("raw,expected", [
        ("ACTIVE", OrderStatus.ACTIVE),
        ("paused", OrderStatus.PAUSED),
        ("Заморожен", OrderStatus.FROZEN),
        ("Доставлен", OrderStatus.COMPLETED),
        ("На паузе", OrderStatus.PAUSED),
        ("unknown", None),
        ("  ", None),
    ])
    def test_parse_order_status(self, raw, expected):
        assert parse_order_status(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("cancel", BulkAction.CANCEL),
        ("changeCombo", BulkAction.CHANGE_COMBO),
        ("change-combo", BulkAction.CHANGE_COMBO),
        ("RESUME", BulkAction.RESUME),
        ("delete", None),
        ("", None),
    ])
    def test_parse_bulk_action(self, raw, expected):
        assert BulkAction.parse(raw) == expected

    def test_resume_skips_cutoff_precheck(self):
        assert not BulkAction.RESUME.requires_cutoff_check
        assert BulkAction.CANCEL.requires_cutoff_check

    @pytest.mark.parametrize("raw,expected", [
        ("EVERY_OTHER_DAY", ScheduleType.EVERY_OTHER_DAY),
        ("custom", ScheduleType.CUSTOM),
        ("WEEKDAYS", ScheduleType.EVERY_DAY),
        (None, ScheduleType.EVERY_DAY),
    ])
    def test_schedule_type_normalization(self, raw, expected):
        assert ScheduleType.normalize(raw) == expected
