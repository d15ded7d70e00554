"""
Runtime configuration for the outcome engine service.

Values come from the environment (optionally a .env file loaded by the app
factory) and are validated once at import. The engine's statistical tables
live in the JSON file named by ENGINE_CONFIG_PATH.
"""
from cluster_engine.config_validator import validate_runtime_settings


class Config:
    """Service configuration with fail-fast validation."""

    _validated_config = validate_runtime_settings()

    DEBUG = _validated_config['DEBUG']
    TESTING = False
    LOG_LEVEL = _validated_config['LOG_LEVEL']

    # Path to the engine JSON; None selects the packaged default table
    ENGINE_CONFIG_PATH = _validated_config['ENGINE_CONFIG_PATH']

    # None seeds the engine's random source from OS entropy
    ENGINE_RANDOM_SEED = _validated_config['ENGINE_RANDOM_SEED']

    # Request-level wager limits for the HTTP adapter
    MIN_WAGER = _validated_config['MIN_WAGER']
    MAX_WAGER = _validated_config['MAX_WAGER']

    JSON_SORT_KEYS = False


class TestingConfig(Config):
    TESTING = True
    ENGINE_CONFIG_PATH = None
    ENGINE_RANDOM_SEED = 1234
