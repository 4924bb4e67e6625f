"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a YAML
configuration file (~/.leadsight/config.yaml). Also discovers the ordered
list of upstream API credentials.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

from leadsight.domain.models.common import ApiKeySecret, Credential, CredentialName, RetryPolicy

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".leadsight"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "LEADSIGHT_"

EXTRA_KEY_SLOTS = 5

DEFAULTS: Dict[str, Any] = {
    'ai.provider': 'gemini',
    'batch.size': 5,
    'batch.item_limit': 15,
    'batch.inter_batch_delay': 0.5,
    'retry.max_attempts': 5,
    'retry.base_delay': 1.0,
    'retry.max_delay': 60.0,
    'retry.jitter': True,
    'retry.max_outer_retries': 10,
    'retry.max_total_wait': 600.0,
    'logging.level': 'INFO',
    'logging.format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
}

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from the YAML file and the .env file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. DEFAULTS

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
        else:
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above current directory.")

    _loaded = True
    logger.info("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets loaded configuration so the next access reloads it."""
    global _config, _loaded
    _config = {}
    _loaded = False


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _lookup_yaml(key: str) -> Any:
    if key in _config:
        return _config[key]
    node: Any = _config
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def env_var_name(key: str) -> str:
    """'batch.size' -> 'LEADSIGHT_BATCH_SIZE'."""
    return ENV_PREFIX + key.upper().replace('.', '_')


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by dotted key.

    Priority:
    1. Test configuration
    2. Environment variable (LEADSIGHT_ prefixed, dots as underscores)
    3. YAML config (flat dotted key or nested mapping)
    4. `default`, then DEFAULTS
    """
    if key in _test_config:
        return _test_config[key]

    env_value = os.environ.get(env_var_name(key))
    if env_value is not None:
        return _coerce(env_value)

    load_configuration()
    value = _lookup_yaml(key)
    if value is not None:
        return value

    if default is not None:
        return default
    return DEFAULTS.get(key)


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Overrides configuration values; used by tests."""
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()


# --- Typed accessors ---

def _positive_int(key: str) -> int:
    value = int(get_config(key))
    if value < 1:
        raise ValueError(f"Configuration '{key}' must be at least 1, got {value}.")
    return value


def _non_negative_float(key: str) -> float:
    value = float(get_config(key))
    if value < 0:
        raise ValueError(f"Configuration '{key}' must be non-negative, got {value}.")
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def get_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=_positive_int('retry.max_attempts'),
        base_delay=_non_negative_float('retry.base_delay'),
        max_delay=_non_negative_float('retry.max_delay'),
        jitter=_as_bool(get_config('retry.jitter')),
    )


def get_batch_size() -> int:
    return _positive_int('batch.size')


def get_item_limit() -> int:
    return _positive_int('batch.item_limit')


def get_inter_batch_delay() -> float:
    return _non_negative_float('batch.inter_batch_delay')


def get_max_outer_retries() -> int:
    value = int(get_config('retry.max_outer_retries'))
    if value < 0:
        raise ValueError(f"Configuration 'retry.max_outer_retries' must be non-negative, got {value}.")
    return value


def get_max_total_wait() -> float:
    return _non_negative_float('retry.max_total_wait')


def get_provider() -> str:
    return str(get_config('ai.provider')).lower()


def get_model() -> Optional[str]:
    model = get_config('ai.model')
    return str(model) if model is not None else None


def get_base_url() -> Optional[str]:
    url = get_config('ai.base_url')
    return str(url) if url else None


def _env_candidates(provider: str) -> List[Tuple[str, Optional[str]]]:
    if provider == 'openai':
        return [('openai', os.environ.get('OPENAI_API_KEY'))]
    if provider == 'groq':
        return [('groq', os.environ.get('GROQ_API_KEY'))]
    candidates = [('google', os.environ.get('GOOGLE_API_KEY'))]
    for slot in range(1, EXTRA_KEY_SLOTS + 1):
        candidates.append((f'extra_{slot}', os.environ.get(f'GEMINI_API_KEY_EXTRA_{slot}')))
    candidates.append(('primary', os.environ.get('GEMINI_API_KEY_PRIMARY')))
    candidates.append(('secondary', os.environ.get('GEMINI_API_KEY_SECONDARY')))
    return candidates


def get_credentials(provider: str = 'gemini') -> List[Credential]:
    """Discovers API credentials in preference order.

    For Gemini: GOOGLE_API_KEY, GEMINI_API_KEY_EXTRA_1..5,
    GEMINI_API_KEY_PRIMARY, GEMINI_API_KEY_SECONDARY. For OpenAI and Groq:
    OPENAI_API_KEY or GROQ_API_KEY. Then, for every provider, the
    `credentials` list from config. A secret that already appeared is skipped.
    """
    load_configuration()
    candidates = _env_candidates(provider)

    configured = get_config('credentials') or []
    if not isinstance(configured, list):
        # Env values are coerced, so a numeric key arrives as int or float
        configured = str(configured).split(',')
    for index, secret in enumerate(configured, start=1):
        candidates.append((f'config_{index}', secret))

    credentials: List[Credential] = []
    seen = set()
    for name, secret in candidates:
        if not secret or not str(secret).strip():
            continue
        secret = str(secret).strip()
        if secret in seen:
            logger.warning(f"Skipping credential '{name}': same key already configured.")
            continue
        seen.add(secret)
        credentials.append(Credential(identity=CredentialName(name), secret=ApiKeySecret(secret)))

    logger.debug(f"Discovered {len(credentials)} credential(s).")
    return credentials
