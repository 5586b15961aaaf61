# ============================================================================
# tests/unit/test_regression.py
# ============================================================================
"""
Tests for the regression engine
"""

import math
import pytest

from symptom_trends.temporal.models import Point, RegressionResult
from symptom_trends.temporal.regression import (
    compute_linear_regression,
    predict,
    remove_outliers,
    validate_regression_input,
)
from symptom_trends.utils.exceptions import (
    DegenerateInputError,
    InsufficientDataError,
    RegressionError,
)


class TestComputeLinearRegression:
    """Test compute_linear_regression"""

    def test_recovers_noise_free_line(self, linear_points):
        """Test slope, intercept and R² on an exact line"""
        result = compute_linear_regression(linear_points)

        assert result.slope == pytest.approx(2.5)
        assert result.intercept == pytest.approx(-3.0)
        assert result.r_squared == pytest.approx(1.0)

    def test_unsorted_input(self, linear_points):
        """Test that point order does not matter"""
        shuffled = linear_points[::2] + linear_points[1::2][::-1]

        result = compute_linear_regression(shuffled)

        assert result.slope == pytest.approx(2.5)
        assert result.intercept == pytest.approx(-3.0)

    def test_day_scale_timestamps(self):
        """Test a line over days-since-epoch sized x values"""
        base = 20089.0
        points = [Point(x=base + d, y=-0.4 * d + 8) for d in range(30)]

        result = compute_linear_regression(points)

        assert result.slope == pytest.approx(-0.4, rel=1e-6)
        assert predict(base + 10, result) == pytest.approx(4.0, rel=1e-6)
        assert result.r_squared == pytest.approx(1.0, abs=1e-6)

    def test_flat_series_is_perfect_fit(self):
        """Test all-equal y values"""
        points = [Point(x=float(x), y=4.0) for x in range(10)]

        result = compute_linear_regression(points)

        assert result.slope == pytest.approx(0.0)
        assert result.intercept == pytest.approx(4.0)
        assert result.r_squared == 1.0

    def test_noisy_series(self):
        """Test R² below 1 for noisy data"""
        ys = [1, 3, 2, 5, 4, 6, 5, 8]
        points = [Point(x=float(i), y=float(y)) for i, y in enumerate(ys)]

        result = compute_linear_regression(points)

        assert result.slope > 0
        assert 0 < result.r_squared < 1

    @pytest.mark.parametrize("count", [0, 1])
    def test_too_few_points(self, count):
        """Test fewer than two points"""
        points = [Point(x=1.0, y=2.0)] * count

        with pytest.raises(InsufficientDataError) as exc_info:
            compute_linear_regression(points)

        assert exc_info.value.point_count == count
        assert isinstance(exc_info.value, RegressionError)

    def test_none_points(self):
        """Test None input"""
        with pytest.raises(InsufficientDataError):
            compute_linear_regression(None)

    def test_identical_x_values(self):
        """Test vertical data"""
        points = [Point(x=5.0, y=float(y)) for y in range(6)]

        with pytest.raises(DegenerateInputError):
            compute_linear_regression(points)

    def test_identical_large_timestamps(self):
        """Test identical epoch-millisecond x values"""
        points = [Point(x=1735689600000.0, y=float(y)) for y in (3, 5, 4, 6, 2)]

        with pytest.raises(DegenerateInputError):
            compute_linear_regression(points)

    def test_input_not_mutated(self, linear_points):
        """Test purity"""
        before = list(linear_points)

        compute_linear_regression(linear_points)

        assert linear_points == before

    def test_deterministic(self):
        """Test bit-identical results on repeated calls"""
        points = [Point(x=float(i) * 1.37, y=math.sin(i) * 3 + i * 0.2) for i in range(40)]

        first = compute_linear_regression(points)
        second = compute_linear_regression(list(points))

        assert first == second

    def test_result_dict_round_trip(self, linear_points):
        """Test storage shape of RegressionResult"""
        result = compute_linear_regression(linear_points)

        data = result.to_dict()

        assert set(data) == {"slope", "intercept", "rSquared"}
        assert RegressionResult.from_dict(data) == result


class TestPredict:
    """Test predict"""

    @pytest.mark.parametrize("x", [-10.0, 0.0, 3.5, 1e6])
    def test_predict_on_line(self, x):
        """Test predict(x) == 2x + 1"""
        regression = RegressionResult(slope=2, intercept=1, r_squared=1)

        assert predict(x, regression) == 2 * x + 1


class TestValidateRegressionInput:
    """Test validate_regression_input"""

    def test_accepts_valid_series(self):
        """Test a valid series"""
        points = [Point(x=float(i), y=float(i % 3)) for i in range(14)]

        validation = validate_regression_input(points)

        assert validation.is_valid is True
        assert validation.error is None

    def test_rejects_too_few_points(self):
        """Test default minimum of 14"""
        points = [Point(x=float(i), y=1.0) for i in range(13)]

        validation = validate_regression_input(points)

        assert validation.is_valid is False
        assert "14" in validation.error

    def test_custom_minimum(self):
        """Test min_points override"""
        points = [Point(x=float(i), y=1.0) for i in range(3)]

        assert validate_regression_input(points, min_points=3).is_valid is True
        assert validate_regression_input(points, min_points=4).is_valid is False

    def test_rejects_empty(self):
        """Test empty input"""
        assert validate_regression_input([]).is_valid is False

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_rejects_non_finite(self, bad):
        """Test NaN and infinity in either coordinate"""
        points = [Point(x=float(i), y=1.0) for i in range(14)]

        with_bad_y = points[:-1] + [Point(x=13.0, y=bad)]
        with_bad_x = points[:-1] + [Point(x=bad, y=1.0)]

        assert validate_regression_input(with_bad_y).is_valid is False
        assert "NaN" in validate_regression_input(with_bad_x).error

    def test_rejects_zero_x_variance(self):
        """Test identical x values"""
        points = [Point(x=7.0, y=float(i)) for i in range(14)]

        validation = validate_regression_input(points)

        assert validation.is_valid is False
        assert "variance" in validation.error


class TestRemoveOutliers:
    """Test remove_outliers"""

    def test_strips_single_extreme_value(self):
        """Test an injected spike is removed"""
        ys = [5, 6, 7, 5, 6, 7, 6, 100]
        points = [Point(x=float(i), y=float(y)) for i, y in enumerate(ys)]

        filtered = remove_outliers(points)

        assert len(filtered) == 7
        assert all(p.y != 100 for p in filtered)

    def test_preserves_clean_series(self):
        """Test nothing is removed when there is no outlier"""
        ys = [5, 6, 7, 5, 6, 7, 6, 5]
        points = [Point(x=float(i), y=float(y)) for i, y in enumerate(ys)]

        assert remove_outliers(points) == points

    def test_small_series_unchanged(self):
        """Test fewer than four points"""
        points = [Point(x=0.0, y=1.0), Point(x=1.0, y=50.0), Point(x=2.0, y=1.0)]

        assert remove_outliers(points) == points

    def test_keeps_order_and_input(self):
        """Test original order kept and input untouched"""
        points = [Point(x=float(i), y=float(y)) for i, y in enumerate([6, 5, -80, 7, 6, 5, 6, 7])]
        before = list(points)

        filtered = remove_outliers(points)

        assert points == before
        assert [p.x for p in filtered] == [0.0, 1.0, 3.0, 4.0, 5.0, 6.0, 7.0]
