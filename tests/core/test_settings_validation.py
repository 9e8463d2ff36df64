"""
Tests for Settings configuration validation in config.py.
"""
import pytest
from pydantic import ValidationError

from haven_cat.core.config import Settings


class TestCATDefaults:
    def test_defaults_match_exam_blueprint(self):
        settings = Settings()
        assert settings.CAT_MIN_QUESTIONS == 60
        assert settings.CAT_MAX_QUESTIONS == 145
        assert settings.CAT_TIME_LIMIT_SECONDS == 18000
        assert settings.CAT_PASSING_THETA == pytest.approx(0.0)
        assert settings.CAT_SE_THRESHOLD == pytest.approx(0.30)
        assert settings.CAT_CONFIDENCE_Z == pytest.approx(1.96)
        assert settings.CAT_ESTIMATION_METHOD == "eap"
        assert settings.CAT_RANDOMESQUE_K == 5
        assert settings.CAT_EXPOSURE_ALERT_THRESHOLD == pytest.approx(0.15)

    def test_content_boost_defaults(self):
        settings = Settings()
        assert settings.CAT_CONTENT_BOOST_FLOOR == pytest.approx(0.5)
        assert settings.CAT_CONTENT_BOOST_CEILING == pytest.approx(1.5)
        assert settings.CAT_CONTENT_BOOST_SLOPE == pytest.approx(2.0)


class TestQuestionBoundsValidation:
    def test_equal_bounds_allowed(self):
        settings = Settings(CAT_MIN_QUESTIONS=10, CAT_MAX_QUESTIONS=10)
        assert settings.CAT_MIN_QUESTIONS == settings.CAT_MAX_QUESTIONS

    def test_min_above_max_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(CAT_MIN_QUESTIONS=20, CAT_MAX_QUESTIONS=10)
        assert "must not exceed" in str(exc_info.value)

    def test_zero_min_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(CAT_MIN_QUESTIONS=0)
        errors = exc_info.value.errors()
        assert errors[0]["loc"] == ("CAT_MIN_QUESTIONS",)


class TestEstimationValidation:
    def test_mle_accepted(self):
        assert Settings(CAT_ESTIMATION_METHOD="mle").CAT_ESTIMATION_METHOD == "mle"

    def test_unknown_method_rejected(self):
        with pytest.raises(ValidationError):
            Settings(CAT_ESTIMATION_METHOD="map")

    @pytest.mark.parametrize("value", [0.0, -0.2, 1.5])
    def test_se_threshold_range(self, value):
        with pytest.raises(ValidationError):
            Settings(CAT_SE_THRESHOLD=value)

    def test_non_positive_prior_sd_rejected(self):
        with pytest.raises(ValidationError):
            Settings(CAT_PRIOR_SD=0.0)


class TestContentBoostValidation:
    def test_floor_above_ceiling_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(CAT_CONTENT_BOOST_FLOOR=2.0, CAT_CONTENT_BOOST_CEILING=1.5)
        assert "must not exceed" in str(exc_info.value)

    def test_negative_slope_rejected(self):
        with pytest.raises(ValidationError):
            Settings(CAT_CONTENT_BOOST_SLOPE=-1.0)

    def test_exposure_threshold_range(self):
        with pytest.raises(ValidationError):
            Settings(CAT_EXPOSURE_ALERT_THRESHOLD=1.2)
