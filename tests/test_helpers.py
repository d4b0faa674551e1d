"""Tests for the shared input-coercion helpers."""

from datetime import date

import pytest

from pathway_studio.core.exceptions import ValidationError
from pathway_studio.services import campaign_service, template_service
from pathway_studio.utils.helpers import clean_tags, parse_bool, parse_date_input


class TestParseBool:

    @pytest.mark.parametrize("value", [True, 1, "true", " Yes ", "on", "1"])
    def test_truthy(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", [False, 0, "false", "No", "off", "0"])
    def test_falsy(self, value):
        assert parse_bool(value, default=True) is False

    def test_none_uses_default(self):
        assert parse_bool(None, default=True) is True

    @pytest.mark.parametrize("value", ["maybe", "", "tru", [], {}])
    def test_unrecognised_rejected(self, value):
        with pytest.raises(ValueError):
            parse_bool(value)

    def test_template_rejects_unknown_flag(self, alice):
        with pytest.raises(ValidationError) as exc:
            template_service.create_template(alice, {"name": "T", "is_private": "maybe"})
        assert exc.value.details == {"is_private": "invalid"}

    def test_campaign_rejects_unknown_flag(self, alice):
        with pytest.raises(ValidationError):
            campaign_service.create_campaign(alice, {"name": "C", "is_public": "perhaps"})


class TestParseDateInput:

    @pytest.mark.parametrize("value", ["2024-03-01", "2024-03-01T10:00:00", "01.03.2024"])
    def test_accepted_formats(self, value):
        assert parse_date_input(value) == date(2024, 3, 1)

    def test_blank_is_none(self):
        assert parse_date_input("") is None

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            parse_date_input("next tuesday")


class TestCleanTags:

    def test_rejects_non_list(self):
        with pytest.raises(ValueError):
            clean_tags("a,b")
