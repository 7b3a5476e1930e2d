"""YAML configuration loader for wakelisten."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "wakeword": {
        "phrase": "list maker",
        "model_paths": [],
        "score": 0.8,
        "vad_threshold": 0.0,
    },
    "audio": {
        "sample_rate": 16000,
        "chunk_size": 1280,
        "channels": 1,
        "mic_gain_db": 0,
        "input_device_index": None,
    },
    "vad": {
        "aggressiveness": 0,
        "frame_bytes": 640,
    },
    "session": {
        "max_listen_time_ms": 7500,
        "max_silence_time_ms": 1500,
    },
    "playback": {
        "speaker_device": "default",
        "resources_dir": "resources",
        "setup_commands": [],
        "play_startup_sound": True,
    },
    "google_cloud": {
        "credentials_path": None,
        "language": "en-US",
    },
    "tts": {
        "voice": "en-US-Standard-C",
        "output_format": "wav",
    },
    "responses": {
        "reply_template": "You said: {command}",
        "sorry_understand": "Sorry, but I did not quite understand.",
        "sorry_execute": "Sorry, but I could not do that.",
        "sorry_service": "Sorry, the service is not available at the moment.",
    },
    "storage": {
        "log_directory": "log",
        "max_age_days": 30,
    },
    "logging": {
        "level": "INFO",
        "file_path": "log/wakelisten.log",
        "console_output": True,
    },
    "metrics": {
        "topic": "metrics",
    },
}


def merge_config(base: Any, override: Any) -> Any:
    """Deep-merge override into base and return the result.

    Dicts merge key by key, lists concatenate, anything else is replaced by
    the override unless the override is None.
    """
    if isinstance(base, list) and isinstance(override, list):
        return base + override
    if isinstance(base, dict) and isinstance(override, dict):
        merged = dict(base)
        for key, value in override.items():
            if key in merged:
                merged[key] = merge_config(merged[key], value)
            else:
                merged[key] = value
        return merged
    return base if override is None else override


class WakeListenConfig:
    """wakelisten configuration loader."""

    def __init__(self,
                 config_path: Optional[str] = None,
                 secrets_path: Optional[str] = None,
                 overrides: Optional[Dict[str, Any]] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, only the built-in
                        defaults (and overrides) are used.
            secrets_path: Optional YAML file merged over the main config, for
                         credentials kept out of the main file.
            overrides: Values merged last, mostly for tests and CLI flags.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is not None and not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        config = copy.deepcopy(DEFAULT_CONFIG)
        if self.config_file is not None:
            logger.info(f"Loading configuration from: {self.config_file}")
            config = merge_config(config, self._load_yaml(self.config_file))

        secrets_path = secrets_path or config.get("secrets_path")
        if secrets_path:
            secrets_file = self._resolve(secrets_path)
            if secrets_file.exists():
                logger.info(f"Loading secrets from: {secrets_file}")
                config = merge_config(config, self._load_yaml(secrets_file))
            else:
                logger.warning(f"Secrets file not found, skipping: {secrets_file}")

        if overrides:
            config = merge_config(config, overrides)

        self._resolve_paths(config)
        self.config = config
        logger.info("Configuration loaded successfully")

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        """Load and parse one YAML configuration file."""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        return data

    def _resolve(self, path: str) -> Path:
        """Resolve a path relative to the config file location."""
        if os.path.isabs(path) or self.config_file is None:
            return Path(path)
        return self.config_file.parent / path

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        if self.config_file is None:
            return

        for section, key in [("google_cloud", "credentials_path"),
                             ("storage", "log_directory"),
                             ("logging", "file_path"),
                             ("playback", "resources_dir")]:
            value = config.get(section, {}).get(key)
            if value and not os.path.isabs(value):
                config[section][key] = str(self.config_file.parent / value)

        model_paths = config.get("wakeword", {}).get("model_paths") or []
        config["wakeword"]["model_paths"] = [str(self._resolve(p)) for p in model_paths]

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'session.max_listen_time_ms').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_google_credentials_path(self) -> str:
        """Get Google credentials path - raises if not configured or missing."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            raise ValueError("Google credentials path not configured (google_cloud.credentials_path)")

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise FileNotFoundError(f"Google credentials file not found: {creds_path}")

        return str(creds_file.absolute())

    def get_log_directory(self) -> str:
        """Get the directory that receives per-session audio and result files."""
        log_dir = self.get('storage.log_directory', 'log')
        return str(Path(log_dir).absolute())

    def get_resources_directory(self) -> Path:
        """Get the directory holding the cue sound files."""
        return Path(self.get('playback.resources_dir', 'resources'))
