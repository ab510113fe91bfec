# Overview: Pytest coverage for boundary integer and text coercion.

import pytest

from retailcore.errors import ValidationError
from retailcore.validation import MAX_INT_COLUMN, MIN_INT_COLUMN, coerce_int, coerce_text


class TestCoerceInt:
    def test_column_bounds_are_accepted(self):
        assert coerce_int(MAX_INT_COLUMN, "qty") == MAX_INT_COLUMN
        assert coerce_int(MIN_INT_COLUMN, "qty") == MIN_INT_COLUMN
        assert coerce_int(str(MAX_INT_COLUMN), "qty") == MAX_INT_COLUMN

    @pytest.mark.parametrize("value", [MAX_INT_COLUMN + 1, MIN_INT_COLUMN - 1, 10**20, "99999999999999999999"])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            coerce_int(value, "qty")
        assert "out of range" in str(exc_info.value)

    @pytest.mark.parametrize("value", [True, 1.0, "1.0", "1e3", "", "12abc", None, [1]])
    def test_non_integers_rejected(self, value):
        with pytest.raises(ValidationError):
            coerce_int(value, "qty")

    def test_signed_digit_strings(self):
        assert coerce_int(" -7 ", "qty") == -7
        assert coerce_int("+7", "qty") == 7


class TestCoerceText:
    def test_strips_and_bounds(self):
        assert coerce_text("  hi ", "note", max_length=5) == "hi"
        with pytest.raises(ValidationError):
            coerce_text("toolong", "note", max_length=3)

    def test_optional_blank_is_none(self):
        assert coerce_text("   ", "note", max_length=5, required=False) is None
        assert coerce_text(None, "note", max_length=5, required=False) is None
