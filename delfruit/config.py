"""Configuration loading and logging setup."""
import json
import logging
import os
from typing import Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger('delfruit.config')

DEFAULT_CONFIG: Dict = {
    'database_url': 'sqlite:///delfruit.db',
    'secret_key': '',
    'log_level': 'INFO',
    'log_file': None,
    'default_page_size': 50,
    # None means callers may request any page size
    'max_page_size': None,
    'token_max_age': 24 * 60 * 60,
    'port': 4201,
}

# Environment variable -> (config key, is integer)
_ENV_OVERRIDES = {
    'DELFRUIT_DATABASE_URL': ('database_url', False),
    'DELFRUIT_SECRET_KEY': ('secret_key', False),
    'DELFRUIT_LOG_LEVEL': ('log_level', False),
    'DELFRUIT_LOG_FILE': ('log_file', False),
    'DELFRUIT_DEFAULT_PAGE_SIZE': ('default_page_size', True),
    'DELFRUIT_MAX_PAGE_SIZE': ('max_page_size', True),
    'DELFRUIT_TOKEN_MAX_AGE': ('token_max_age', True),
    'DELFRUIT_PORT': ('port', True),
}


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None) -> logging.Logger:
    """Configure the root ``delfruit`` logger.

    Args:
        level:    Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path; when given, records are also written there.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, str(level).upper(), logging.INFO)
    root = logging.getLogger('delfruit')
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        root.addHandler(handler)
    if log_file:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
            fh = logging.FileHandler(log_file)
            fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
            root.addHandler(fh)
        except OSError as e:
            root.warning('Could not create log file handler for %s: %s', log_file, e)
    root.setLevel(numeric)
    return root


def _coerce_int(key: str, value, default):
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer value %r for %s", value, key)
        return default


def load_config(config_path: str = 'config.json') -> Dict:
    """Load configuration from JSON file with environment variable support.

    Precedence, lowest first: :data:`DEFAULT_CONFIG`, the JSON file at
    *config_path* (optional), then ``DELFRUIT_*`` environment variables.
    A ``.env`` file in the working directory is loaded into the environment
    first.
    """
    load_dotenv()
    config = dict(DEFAULT_CONFIG)

    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
            if isinstance(file_config, dict):
                config.update(file_config)
            else:
                logger.warning("Config file %s is not a JSON object, ignoring", config_path)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load %s: %s", config_path, e)

    for env_name, (key, is_int) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None:
            continue
        config[key] = _coerce_int(env_name, value, DEFAULT_CONFIG[key]) if is_int else value

    for key in ('default_page_size', 'token_max_age', 'port'):
        config[key] = _coerce_int(key, config.get(key), DEFAULT_CONFIG[key])
        if config[key] <= 0:
            config[key] = DEFAULT_CONFIG[key]
    config['max_page_size'] = _coerce_int('max_page_size', config.get('max_page_size'), None)
    if config['max_page_size'] is not None and config['max_page_size'] <= 0:
        config['max_page_size'] = None
    return config
