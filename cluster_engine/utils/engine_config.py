import json
import logging
import os

from marshmallow import ValidationError

from cluster_engine.schemas import EngineConfigSchema

logger = logging.getLogger(__name__)

DEFAULT_ENGINE_CONFIG_PATH = os.path.abspath(
    os.path.join(os.path.dirname(__file__), '..', 'data', 'engine_config.json')
)


def load_engine_config(config_path=None):
    """
    Loads and structurally validates the engine configuration JSON file.

    Args:
        config_path (str): path to the JSON file; defaults to the packaged configuration.

    Returns:
        EngineConfig: immutable configuration for the process lifetime.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the JSON is malformed or its structure is invalid.
    """
    file_path = config_path or DEFAULT_ENGINE_CONFIG_PATH
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Engine configuration file not found at {file_path}")

    try:
        with open(file_path, 'r') as f:
            raw_config = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e.msg} (line {e.lineno}, col {e.colno})")

    config = parse_engine_config(raw_config, source=file_path)
    logger.info(f"Loaded engine configuration '{config.name}' from {file_path}")
    return config


def parse_engine_config(raw_config, source="<dict>"):
    """Builds an EngineConfig from an already-decoded document with a top-level 'engine' key."""
    if not isinstance(raw_config, dict) or not isinstance(raw_config.get('engine'), dict):
        raise ValueError(f"Engine configuration in {source} must contain an 'engine' object")
    try:
        return EngineConfigSchema().load(raw_config['engine'])
    except ValidationError as e:
        raise ValueError(f"Invalid engine configuration in {source}: {e.messages}")
