from unittest.mock import patch

import pytest

from ai_bookmarks.config import config as config_module
from ai_bookmarks.config.config import Config


@patch.object(Config, 'GEMINI_API_KEY', None)
def test_validate_requires_api_key():
    with pytest.raises(ValueError, match="GEMINI_API_KEY"):
        Config.validate()


@patch.object(Config, 'GEMINI_API_KEY', 'test-key')
def test_validate_returns_settings():
    settings = Config.validate()
    assert settings['model'] == Config.GEMINI_MODEL
    assert settings['max_attempts'] == Config.MAX_ATTEMPTS
    assert settings['delays_ms']['cooldown'] == Config.COOLDOWN_MS


@patch.object(Config, 'GEMINI_API_KEY', 'test-key')
@patch.object(Config, 'MAX_ATTEMPTS', 0)
def test_validate_rejects_zero_attempts():
    with pytest.raises(ValueError, match="MAX_ATTEMPTS"):
        Config.validate()


def test_retry_policy_follows_settings():
    with patch.object(Config, 'MAX_ATTEMPTS', 4), patch.object(Config, 'COOLDOWN_MS', 100):
        policy = Config.retry_policy()

    assert policy.max_attempts == 4
    assert policy.cooldown_ms == 100
    assert policy.rate_limit_initial_delay_ms == Config.RATE_LIMIT_INITIAL_DELAY_MS
    assert policy.rate_limit_multiplier == Config.RATE_LIMIT_MULTIPLIER


def test_env_helpers(monkeypatch):
    monkeypatch.setenv('AI_BOOKMARKS_TEST_INT', '12')
    monkeypatch.setenv('AI_BOOKMARKS_TEST_BAD', 'twelve')
    monkeypatch.delenv('AI_BOOKMARKS_TEST_MISSING', raising=False)

    assert config_module._env_int('AI_BOOKMARKS_TEST_INT', 1) == 12
    assert config_module._env_float('AI_BOOKMARKS_TEST_INT', 1.0) == 12.0
    assert config_module._env_int('AI_BOOKMARKS_TEST_MISSING', 7) == 7
    with pytest.raises(ValueError, match="AI_BOOKMARKS_TEST_BAD"):
        config_module._env_int('AI_BOOKMARKS_TEST_BAD', 1)
