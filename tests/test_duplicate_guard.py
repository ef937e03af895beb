"""Tests for duplicate reading detection."""

import numpy as np
import pytest

from cogboard.acquisition import is_duplicate
from cogboard.acquisition.duplicate_guard import sensor_payload
from cogboard.models import SENSOR_COLUMNS, Sample

from helpers import make_sample


def _payload(sample: Sample) -> np.ndarray:
    return sample.as_row()[list(SENSOR_COLUMNS)]


class TestSensorPayload:
    def test_excludes_battery_and_timestamp(self) -> None:
        sample = make_sample(3, timestamp=99.0)
        payload = sensor_payload(sample)
        np.testing.assert_array_equal(payload, [3, -3, 3, 4, 5, 6])

    def test_accepts_plain_row(self) -> None:
        payload = sensor_payload([1, 2, 3, 4, 5, 6, 7, 8])
        np.testing.assert_array_equal(payload, [1, 2, 3, 4, 5, 6])


class TestIsDuplicate:
    def test_nothing_stored_is_never_duplicate(self) -> None:
        assert is_duplicate(make_sample(1), None) is False

    def test_empty_previous_is_never_duplicate(self) -> None:
        assert is_duplicate(make_sample(1), np.empty(0)) is False

    def test_same_payload_different_timestamp_is_duplicate(self) -> None:
        first = make_sample(1, timestamp=10.0)
        second = make_sample(1, timestamp=10.5)
        assert is_duplicate(second, _payload(first)) is True

    def test_different_battery_is_still_duplicate(self) -> None:
        first = make_sample(1)
        second = Sample(1.0, -1.0, (1.0, 2.0, 3.0, 4.0), battery=0.1, timestamp=5.0)
        assert is_duplicate(second, _payload(first)) is True

    @pytest.mark.parametrize("field_index", range(6))
    def test_any_sensor_field_change_is_not_duplicate(self, field_index: int) -> None:
        first = make_sample(1)
        row = first.as_row()
        row[field_index] += 0.001
        assert is_duplicate(row, _payload(first)) is False

    def test_accepts_2d_last_row_from_get_last_n(self) -> None:
        first = make_sample(1)
        previous = _payload(first).reshape(1, -1)
        assert is_duplicate(make_sample(1, timestamp=2.0), previous) is True

    def test_mismatched_width_raises(self) -> None:
        with pytest.raises(ValueError, match="expected 6"):
            is_duplicate(make_sample(1), [1.0, 2.0])

    def test_custom_columns(self) -> None:
        second = Sample(1.0, -1.0, (9.0, 9.0, 9.0, 9.0), battery=0.8, timestamp=2.0)
        assert is_duplicate(second, [1.0, -1.0], columns=(0, 1)) is True
