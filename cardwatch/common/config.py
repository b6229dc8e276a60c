"""
Configuration Management for Cardwatch

Loads configuration from ~/.cardwatch/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger("cardwatch.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".cardwatch"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"
STORE_PATH = CONFIG_DIR / "violations.json"

LOG_FILE_NAME = "cardwatch.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class TrelloConfig:
    """Trello REST API and webhook configuration"""
    api_key: str = ""
    token: str = ""
    api_secret: str = ""  # Used to verify X-Trello-Webhook signatures
    callback_url: str = ""  # Public URL Trello posts webhooks to
    base_url: str = "https://api.trello.com/1"
    timeout: float = 10.0


@dataclass
class SlackConfig:
    """Slack incoming-webhook configuration"""
    webhook_url: str = ""
    channel: str = ""
    username: str = "cardwatch"


@dataclass
class ValidatorConfig:
    """Rule evaluation and violation tracking configuration"""
    port: int = 8080
    non_dev_marker: str = "non-dev"
    intake_list: str = "task"
    in_progress_list: str = "in progress"
    in_review_list: str = "in review"
    min_title_words: int = 3
    min_labels: int = 2
    sweep_concurrency: int = 5
    renotify_on_update: bool = True
    store_path: str = str(STORE_PATH)
    log_level: str = "INFO"


@dataclass
class CardwatchConfig:
    """Main Cardwatch configuration"""
    trello: TrelloConfig = field(default_factory=TrelloConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    validator: ValidatorConfig = field(default_factory=ValidatorConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_trello_config(data: dict) -> TrelloConfig:
    """Parse trello section from config dict"""
    trello_data = data.get("trello", {})
    return TrelloConfig(
        api_key=trello_data.get("api_key", ""),
        token=trello_data.get("token", ""),
        api_secret=trello_data.get("api_secret", ""),
        callback_url=trello_data.get("callback_url", ""),
        base_url=trello_data.get("base_url", "https://api.trello.com/1"),
        timeout=float(trello_data.get("timeout", 10.0)),
    )


def _parse_slack_config(data: dict) -> SlackConfig:
    """Parse slack section from config dict"""
    slack_data = data.get("slack", {})
    return SlackConfig(
        webhook_url=slack_data.get("webhook_url", ""),
        channel=slack_data.get("channel", ""),
        username=slack_data.get("username", "cardwatch"),
    )


def _parse_validator_config(data: dict) -> ValidatorConfig:
    """Parse validator section from config dict"""
    validator_data = data.get("validator", {})
    return ValidatorConfig(
        port=validator_data.get("port", 8080),
        non_dev_marker=validator_data.get("non_dev_marker", "non-dev"),
        intake_list=validator_data.get("intake_list", "task"),
        in_progress_list=validator_data.get("in_progress_list", "in progress"),
        in_review_list=validator_data.get("in_review_list", "in review"),
        min_title_words=validator_data.get("min_title_words", 3),
        min_labels=validator_data.get("min_labels", 2),
        sweep_concurrency=validator_data.get("sweep_concurrency", 5),
        renotify_on_update=validator_data.get("renotify_on_update", True),
        store_path=validator_data.get("store_path", str(STORE_PATH)),
        log_level=validator_data.get("log_level", "INFO"),
    )


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> CardwatchConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.cardwatch/config.json)
    3. Default values
    """
    config = CardwatchConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.trello = _parse_trello_config(data)
            config.slack = _parse_slack_config(data)
            config.validator = _parse_validator_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Secrets: track which ones came from the environment so save_config
    # never writes them to disk
    _env_secret_map = {
        "TRELLO_API_KEY": ("trello", "api_key"),
        "TRELLO_TOKEN": ("trello", "token"),
        "TRELLO_API_SECRET": ("trello", "api_secret"),
        "SLACK_WEBHOOK_URL": ("slack", "webhook_url"),
    }
    for env_var, (section, attr) in _env_secret_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(getattr(config, section), attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("TRELLO_CALLBACK_URL"):
        config.trello.callback_url = os.getenv("TRELLO_CALLBACK_URL")
    if os.getenv("SLACK_CHANNEL"):
        config.slack.channel = os.getenv("SLACK_CHANNEL")

    if os.getenv("CARDWATCH_PORT"):
        config.validator.port = int(os.getenv("CARDWATCH_PORT"))
    if os.getenv("CARDWATCH_STORE_PATH"):
        config.validator.store_path = os.getenv("CARDWATCH_STORE_PATH")
    if os.getenv("CARDWATCH_SWEEP_CONCURRENCY"):
        config.validator.sweep_concurrency = int(os.getenv("CARDWATCH_SWEEP_CONCURRENCY"))
    if os.getenv("CARDWATCH_RENOTIFY_ON_UPDATE"):
        config.validator.renotify_on_update = _parse_bool(os.getenv("CARDWATCH_RENOTIFY_ON_UPDATE"))
    if os.getenv("CARDWATCH_LOG_LEVEL"):
        config.validator.log_level = os.getenv("CARDWATCH_LOG_LEVEL").upper()

    return config


def save_config(config: CardwatchConfig) -> Path:
    """Save configuration to file.

    Secret fields that were sourced from environment variables are written
    as empty strings so that they are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    trello_section = {
        "api_key": config.trello.api_key,
        "token": config.trello.token,
        "api_secret": config.trello.api_secret,
        "callback_url": config.trello.callback_url,
        "base_url": config.trello.base_url,
        "timeout": config.trello.timeout,
    }
    slack_section = {
        "webhook_url": config.slack.webhook_url,
        "channel": config.slack.channel,
        "username": config.slack.username,
    }
    for section in (trello_section, slack_section):
        for key in list(section):
            if key in env_sourced:
                section[key] = ""

    data = {
        "trello": trello_section,
        "slack": slack_section,
        "validator": {
            "port": config.validator.port,
            "non_dev_marker": config.validator.non_dev_marker,
            "intake_list": config.validator.intake_list,
            "in_progress_list": config.validator.in_progress_list,
            "in_review_list": config.validator.in_review_list,
            "min_title_words": config.validator.min_title_words,
            "min_labels": config.validator.min_labels,
            "sweep_concurrency": config.validator.sweep_concurrency,
            "renotify_on_update": config.validator.renotify_on_update,
            "store_path": config.validator.store_path,
            "log_level": config.validator.log_level,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
    return CONFIG_PATH


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Attach console and file handlers to the "cardwatch" logger.

    Safe to call more than once: handlers are only added the first time.
    The file is <log_dir>/cardwatch.log (default ~/.cardwatch/logs).
    """
    package_logger = logging.getLogger("cardwatch")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if any(getattr(h, "_cardwatch_handler", False) for h in package_logger.handlers):
        return package_logger

    log_dir = Path(log_dir) if log_dir else LOGS_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in (logging.StreamHandler(), logging.FileHandler(log_dir / LOG_FILE_NAME)):
        handler.setFormatter(formatter)
        handler._cardwatch_handler = True
        package_logger.addHandler(handler)

    return package_logger
