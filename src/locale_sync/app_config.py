"""Run configuration for the locale sync."""
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

import yaml
from dotenv import load_dotenv
from openai import AsyncOpenAI

from locale_sync.logging_config import setup_logger
from locale_sync.openai_translator import DEFAULT_APP_DESCRIPTION

DEFAULT_API_BASE_URL = 'https://api.openai.com/v1'
DEFAULT_MODEL_NAME = 'gpt-4o-mini'

DEFAULT_SUPPORTED_LOCALES: List[Dict[str, str]] = [
    {'code': 'de', 'name': 'German'},
    {'code': 'es', 'name': 'Spanish'},
    {'code': 'fr', 'name': 'French'},
    {'code': 'it', 'name': 'Italian'},
    {'code': 'ja', 'name': 'Japanese'},
    {'code': 'ko', 'name': 'Korean'},
    {'code': 'nl', 'name': 'Dutch'},
    {'code': 'pl', 'name': 'Polish'},
    {'code': 'pt', 'name': 'Portuguese'},
    {'code': 'ru', 'name': 'Russian'},
    {'code': 'sl', 'name': 'Slovenian'},
    {'code': 'tr', 'name': 'Turkish'},
    {'code': 'uk', 'name': 'Ukrainian'},
    {'code': 'zh', 'name': 'Chinese (Simplified)'},
]


class ConfigurationError(Exception):
    """Raised when the run cannot start because its configuration is unusable."""


@dataclass(frozen=True)
class AppConfig:
    """Immutable settings for one sync invocation."""
    # Paths
    project_root: str
    locales_dir: str
    source_language: str

    # Language configuration, target code -> display name, in processing order
    language_codes: Dict[str, str]

    # Provider configuration
    api_base_url: str
    model_name: str
    paid_tier: bool
    temperature: float
    max_output_tokens: int
    app_description: str

    # Processing settings
    retry_failed: bool
    dry_run: bool
    show_progress: bool

    # OpenAI client, None in dry-run mode
    openai_client: Optional[AsyncOpenAI] = field(default=None, compare=False, repr=False)

    @property
    def source_file_path(self) -> str:
        return self.locale_file_path(self.source_language)

    def locale_file_path(self, language_code: str) -> str:
        return os.path.join(self.locales_dir, f"{language_code}.json")


def _compute_project_root() -> str:
    """The project whose locales are synced is the current working directory."""
    return os.path.abspath(os.getcwd())


def _load_dotenv_files(project_root: str) -> None:
    """Load .env files from project root or docker directory."""
    dotenv_path_project_root = os.path.join(project_root, '.env')
    dotenv_path_docker_dir = os.path.join(project_root, 'docker', '.env')

    if os.path.exists(dotenv_path_project_root):
        load_dotenv(dotenv_path_project_root)
    elif os.path.exists(dotenv_path_docker_dir):
        load_dotenv(dotenv_path_docker_dir)


def _load_yaml_config(project_root: str) -> Dict[str, Any]:
    """Load the YAML configuration file, falling back to defaults on any problem."""
    default_config_path = os.path.join(project_root, 'config.yaml')
    config_file = os.environ.get('LOCALE_SYNC_CONFIG_FILE', default_config_path)

    if not os.path.isabs(config_file):
        config_file = os.path.abspath(os.path.join(project_root, config_file))

    config = {}
    try:
        if not os.path.exists(config_file):
            print(f"Warning: Configuration file '{config_file}' not found. Using default configuration.",
                  file=sys.stderr)
            return config

        if not os.access(config_file, os.R_OK):
            print(f"Error: Configuration file '{config_file}' exists but is not readable. Check file permissions.",
                  file=sys.stderr)
            return config

        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
            if loaded_config is None:
                print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
                      file=sys.stderr)
            elif isinstance(loaded_config, dict):
                config = loaded_config
            else:
                print(f"Error: Configuration file '{config_file}' must contain a YAML dictionary. Using defaults.",
                      file=sys.stderr)

    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
    except OSError as e:
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        print("Using default configuration.", file=sys.stderr)

    return config


def _setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up logger based on configuration."""
    log_config = config.get('logging') or {}
    log_level_str = log_config.get('log_level', 'INFO').upper()
    log_file_path = log_config.get('log_file_path', 'logs/locale_sync.log')
    log_to_console = log_config.get('log_to_console', True)
    return setup_logger(log_level_str, log_file_path, log_to_console)


def _log_dotenv_status(logger: logging.Logger, project_root: str) -> None:
    """Log the status of .env file loading."""
    dotenv_path_project_root = os.path.join(project_root, '.env')
    dotenv_path_docker_dir = os.path.join(project_root, 'docker', '.env')

    if os.path.exists(dotenv_path_project_root):
        logger.info("Loaded environment variables from: %s", dotenv_path_project_root)
    elif os.path.exists(dotenv_path_docker_dir):
        logger.info("Loaded environment variables from: %s", dotenv_path_docker_dir)
    else:
        logger.debug("No .env file found in '%s'; relying on system environment variables.", project_root)


def _build_language_codes(locales_list: List[Dict[str, str]], source_language: str) -> Dict[str, str]:
    """Build the ordered code -> name mapping of target locales."""
    language_codes: Dict[str, str] = {}

    for locale in locales_list:
        code = locale.get('code')
        name = locale.get('name')
        if code and name and code != source_language:
            language_codes[code] = name

    return language_codes


def _parse_flag(value: Any, default: bool) -> bool:
    """Only a boolean true or the string 'true' (any case) switches a flag on."""
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    return value is True


def _env_flag(name: str, default: bool) -> bool:
    return _parse_flag(os.environ.get(name), default)


def _create_openai_client(
        dry_run: bool,
        api_base_url: str,
        logger: logging.Logger
) -> Optional[AsyncOpenAI]:
    """Create the OpenAI client unless running dry."""
    if dry_run:
        logger.info("Running in dry-run mode, OpenAI client will not be initialized")
        return None

    api_key_from_env = os.environ.get('OPENAI_API_KEY')
    if not api_key_from_env:
        logger.critical("CRITICAL: OPENAI_API_KEY environment variable not found.")
        logger.critical("Set it with: export OPENAI_API_KEY=your-key-here, or enable 'dry_run: true'.")
        raise ConfigurationError("OPENAI_API_KEY is not set")

    try:
        client = AsyncOpenAI(api_key=api_key_from_env, base_url=api_base_url)
        logger.info("OpenAI client initialized successfully")
        return client
    except Exception as e:
        logger.critical("Failed to initialize OpenAI client: %s", str(e))
        raise ConfigurationError(f"Failed to initialize OpenAI client: {e}") from e


def load_app_config() -> AppConfig:
    """
    Load application configuration from YAML file and environment variables.

    Environment variables take precedence over the YAML file, which takes
    precedence over built-in defaults.

    Returns:
        AppConfig: The loaded application configuration.

    Raises:
        ConfigurationError: If no target language is configured or the
            credential is missing outside dry-run mode.
    """
    project_root = _compute_project_root()

    _load_dotenv_files(project_root)

    config = _load_yaml_config(project_root)

    logger = _setup_logger_from_config(config)

    _log_dotenv_status(logger, project_root)

    source_language = config.get('source_language', 'en')
    locales_list = config.get('supported_locales', DEFAULT_SUPPORTED_LOCALES)
    language_codes = _build_language_codes(locales_list, source_language)
    if not language_codes:
        logger.critical("CRITICAL: No target languages configured in 'supported_locales'.")
        raise ConfigurationError("No target languages configured")

    locales_dir = config.get('locales_dir', os.path.join('src', 'locales'))
    if not os.path.isabs(locales_dir):
        locales_dir = os.path.join(project_root, locales_dir)

    dry_run = _parse_flag(config.get('dry_run'), False)
    api_base_url = os.environ.get('OPENAI_API', config.get('api_base_url', DEFAULT_API_BASE_URL))
    model_name = os.environ.get('OPENAI_MODEL', config.get('model_name', DEFAULT_MODEL_NAME))
    tier = os.environ.get('OPENAI_TIER', config.get('tier', 'free'))
    retry_failed = _env_flag('RETRY_FAILED', _parse_flag(config.get('retry_failed'), False))

    openai_client = _create_openai_client(dry_run, api_base_url, logger)

    return AppConfig(
        project_root=project_root,
        locales_dir=locales_dir,
        source_language=source_language,
        language_codes=language_codes,
        api_base_url=api_base_url,
        model_name=model_name,
        paid_tier=str(tier).strip().lower() == 'paid',
        temperature=float(config.get('temperature', 0.3)),
        max_output_tokens=int(config.get('max_output_tokens', 500)),
        app_description=config.get('app_description', DEFAULT_APP_DESCRIPTION),
        retry_failed=retry_failed,
        dry_run=dry_run,
        show_progress=_parse_flag(config.get('show_progress'), True),
        openai_client=openai_client
    )
