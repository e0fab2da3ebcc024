import pytest

from creative_generation.config import (
    DEFAULT_FIREFLY_BASE_URL,
    DEFAULT_IMS_TOKEN_URL,
    DEFAULT_SCENE_MODEL,
    Settings,
)
from creative_generation.errors import ConfigError


def test_from_env_requires_client_credentials():
    with pytest.raises(ConfigError, match="FFS_CLIENT_SECRET"):
        Settings.from_env({"FFS_CLIENT_ID": "id"})


def test_from_env_defaults():
    settings = Settings.from_env({"FFS_CLIENT_ID": "id", "FFS_CLIENT_SECRET": "secret"})

    assert settings.firefly_base_url == DEFAULT_FIREFLY_BASE_URL
    assert settings.ims_token_url == DEFAULT_IMS_TOKEN_URL
    assert settings.scene_model == DEFAULT_SCENE_MODEL
    assert settings.gemini_api_key is None
    assert settings.image_model_version is None
    assert settings.max_wait is None
    assert settings.pacing_delay == 1.0


def test_from_env_reads_optional_values_and_overrides():
    settings = Settings.from_env(
        {
            "FFS_CLIENT_ID": "id",
            "FFS_CLIENT_SECRET": "secret",
            "GOOGLE_API_KEY": "google-key",
            "FIREFLY_MODEL_VERSION": "image4_ultra",
            "FIREFLY_BASE_URL": "http://localhost:8080",
        },
        max_wait=30.0,
    )

    assert settings.gemini_api_key == "google-key"
    assert settings.image_model_version == "image4_ultra"
    assert settings.firefly_base_url == "http://localhost:8080"
    assert settings.max_wait == 30.0


def test_gemini_api_key_takes_precedence():
    settings = Settings.from_env(
        {
            "FFS_CLIENT_ID": "id",
            "FFS_CLIENT_SECRET": "secret",
            "GEMINI_API_KEY": "gemini-key",
            "GOOGLE_API_KEY": "google-key",
        }
    )
    assert settings.gemini_api_key == "gemini-key"
