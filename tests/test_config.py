import os
import unittest
from unittest.mock import patch

import pytest

import config
from core.exceptions import ValidationError


class ServiceSettingsTests(unittest.TestCase):
    def test_defaults_without_environment(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = config.ServiceSettings.from_env()

        assert settings.ors_api_key == ""
        assert settings.ors_base_url == config.DEFAULT_ORS_BASE_URL
        assert settings.overpass_url == config.DEFAULT_OVERPASS_URL
        assert settings.overpass_timeout_s == 25.0
        assert settings.optimization_timeout_s == 120.0
        assert settings.mongo_db == "round_planner"

    def test_environment_overrides(self) -> None:
        with patch.dict(
            os.environ,
            {
                "ORS_API_KEY": "  abc123  ",
                "ORS_BASE_URL": "http://ors.local:8080/ors/",
                "OVERPASS_TIMEOUT_S": "60",
                "OPTIMIZATION_TIMEOUT_S": "30.5",
                "MONGO_DB": "rounds_test",
            },
            clear=True,
        ):
            settings = config.ServiceSettings.from_env()

        assert settings.ors_api_key == "abc123"
        assert settings.ors_base_url == "http://ors.local:8080/ors"
        assert settings.overpass_timeout_s == 60.0
        assert settings.optimization_timeout_s == 30.5
        assert settings.mongo_db == "rounds_test"

    def test_blank_numbers_fall_back_to_defaults(self) -> None:
        with patch.dict(os.environ, {"ORS_TIMEOUT_S": " "}, clear=True):
            settings = config.ServiceSettings.from_env()

        assert settings.ors_timeout_s == 30.0


def test_invalid_numbers_are_rejected() -> None:
    with patch.dict(os.environ, {"OVERPASS_TIMEOUT_S": "soon"}, clear=True):
        with pytest.raises(ValidationError) as raised:
            config.ServiceSettings.from_env()

    assert "OVERPASS_TIMEOUT_S" in raised.value.message


def test_require_ors_api_key() -> None:
    assert config.ServiceSettings(ors_api_key="k").require_ors_api_key() == "k"
    with pytest.raises(ValidationError):
        config.ServiceSettings().require_ors_api_key()


def test_settings_are_immutable() -> None:
    settings = config.ServiceSettings()

    with pytest.raises(AttributeError):
        settings.ors_api_key = "changed"


def test_cors_origins_are_split_and_trimmed() -> None:
    with patch.dict(
        os.environ,
        {"CORS_ALLOWED_ORIGINS": " https://rounds.example , ,http://10.0.0.5:3000"},
        clear=True,
    ):
        settings = config.ServiceSettings.from_env()

    assert settings.cors_allowed_origins == (
        "https://rounds.example",
        "http://10.0.0.5:3000",
    )


def test_cors_origins_default_to_local_frontend() -> None:
    with patch.dict(os.environ, {"CORS_ALLOWED_ORIGINS": " , "}, clear=True):
        settings = config.ServiceSettings.from_env()

    assert settings.cors_allowed_origins == config.DEFAULT_CORS_ORIGINS
