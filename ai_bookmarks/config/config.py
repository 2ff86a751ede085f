import os
from typing import Dict, Any
from dotenv import load_dotenv

from . import constants

# Load environment variables from .env file
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Setting {name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Setting {name} must be a number, got {value!r}")


class Config:
    """Base configuration class"""
    # Gemini settings
    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY') or os.getenv('GOOGLE_API_KEY')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', constants.GEMINI_MODEL)
    GEMINI_TEMPERATURE = _env_float('GEMINI_TEMPERATURE', constants.GEMINI_TEMPERATURE)
    GEMINI_MAX_OUTPUT_TOKENS = _env_int('GEMINI_MAX_OUTPUT_TOKENS', constants.GEMINI_MAX_OUTPUT_TOKENS)
    CLASSIFIER_TIMEOUT_SECONDS = _env_float('CLASSIFIER_TIMEOUT_SECONDS', constants.CLASSIFIER_TIMEOUT_SECONDS)

    # Retry and throttling (milliseconds)
    MAX_ATTEMPTS = _env_int('MAX_ATTEMPTS', constants.MAX_ATTEMPTS)
    RATE_LIMIT_INITIAL_DELAY_MS = _env_int('RATE_LIMIT_INITIAL_DELAY_MS', constants.RATE_LIMIT_INITIAL_DELAY_MS)
    RATE_LIMIT_MAX_DELAY_MS = _env_int('RATE_LIMIT_MAX_DELAY_MS', constants.RATE_LIMIT_MAX_DELAY_MS)
    RATE_LIMIT_MULTIPLIER = _env_float('RATE_LIMIT_MULTIPLIER', constants.RATE_LIMIT_MULTIPLIER)
    TIMEOUT_RETRY_DELAY_MS = _env_int('TIMEOUT_RETRY_DELAY_MS', constants.TIMEOUT_RETRY_DELAY_MS)
    PARSE_RETRY_DELAY_MS = _env_int('PARSE_RETRY_DELAY_MS', constants.PARSE_RETRY_DELAY_MS)
    ERROR_RETRY_DELAY_MS = _env_int('ERROR_RETRY_DELAY_MS', constants.ERROR_RETRY_DELAY_MS)
    COOLDOWN_MS = _env_int('COOLDOWN_MS', constants.COOLDOWN_MS)

    # Input sanitization
    MAX_TEXT_LENGTH = min(_env_int('MAX_TEXT_LENGTH', constants.MAX_TEXT_LENGTH),
                          constants.MAX_TEXT_LENGTH_CAP)

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    @classmethod
    def retry_policy(cls):
        """Build the retry policy used by the backoff scheduler"""
        from ..core.retry import RetryPolicy

        return RetryPolicy(
            max_attempts=cls.MAX_ATTEMPTS,
            rate_limit_initial_delay_ms=cls.RATE_LIMIT_INITIAL_DELAY_MS,
            rate_limit_max_delay_ms=cls.RATE_LIMIT_MAX_DELAY_MS,
            rate_limit_multiplier=cls.RATE_LIMIT_MULTIPLIER,
            timeout_delay_ms=cls.TIMEOUT_RETRY_DELAY_MS,
            parse_error_delay_ms=cls.PARSE_RETRY_DELAY_MS,
            error_delay_ms=cls.ERROR_RETRY_DELAY_MS,
            cooldown_ms=cls.COOLDOWN_MS,
        )

    @classmethod
    def validate(cls) -> Dict[str, Any]:
        """Validate required configuration settings"""
        missing = []

        # Required settings that must be present
        required = [
            'GEMINI_API_KEY',
        ]

        for setting in required:
            if not getattr(cls, setting):
                missing.append(setting)

        if missing:
            raise ValueError(f"Missing required configuration settings: {', '.join(missing)}")

        if cls.MAX_ATTEMPTS < 1:
            raise ValueError("MAX_ATTEMPTS must be at least 1")
        if cls.CLASSIFIER_TIMEOUT_SECONDS <= 0:
            raise ValueError("CLASSIFIER_TIMEOUT_SECONDS must be positive")

        return {
            'model': cls.GEMINI_MODEL,
            'timeout_seconds': cls.CLASSIFIER_TIMEOUT_SECONDS,
            'max_attempts': cls.MAX_ATTEMPTS,
            'max_text_length': cls.MAX_TEXT_LENGTH,
            'delays_ms': {
                'rate_limit_initial': cls.RATE_LIMIT_INITIAL_DELAY_MS,
                'rate_limit_max': cls.RATE_LIMIT_MAX_DELAY_MS,
                'timeout': cls.TIMEOUT_RETRY_DELAY_MS,
                'parse': cls.PARSE_RETRY_DELAY_MS,
                'error': cls.ERROR_RETRY_DELAY_MS,
                'cooldown': cls.COOLDOWN_MS
            }
        }
