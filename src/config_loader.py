"""
Configuration loader for SAT>IP server discovery
Loads and validates configuration from YAML files
"""

import yaml
import logging
from dataclasses import asdict
from typing import Dict, Any
from pathlib import Path
from datetime import datetime
import pytz

from satip.models import DiscoveryConfig

logger = logging.getLogger(__name__)

def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    """
    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.error(f"Configuration file not found: {config_path}")
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)

        # Validate required sections
        _validate_config(config)

        # Apply defaults
        config = _apply_defaults(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

def _validate_config(config: Dict) -> None:
    """Validate that required configuration sections exist"""
    if not isinstance(config, dict):
        raise ValueError("Configuration must be a mapping")

    if 'discovery' not in config or not isinstance(config['discovery'], dict):
        raise ValueError("Missing required configuration section: discovery")

    discovery = config['discovery']

    # Addresses stay strings here; they are parsed when a run starts
    for field in ['bind_address', 'discovery_address', 'user_agent']:
        if field in discovery and not isinstance(discovery[field], str):
            raise ValueError(f"discovery.{field} must be a string")

    for field in ['discovery_wait_time', 'request_timeout']:
        if field in discovery:
            value = discovery[field]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"discovery.{field} must be a positive number")

    for field in ['max_replies', 'multicast_ttl', 'max_description_bytes']:
        if field in discovery:
            value = discovery[field]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"discovery.{field} must be a positive integer")

    if 'prefer_source_addr' in discovery and not isinstance(discovery['prefer_source_addr'], bool):
        raise ValueError("discovery.prefer_source_addr must be true or false")

    if 'logging' in config:
        _validate_logging(config['logging'])

def _validate_logging(log_config: Dict) -> None:
    """Validate logging level and timezone"""
    if not isinstance(log_config, dict):
        raise ValueError("logging section must be a mapping")

    level = log_config.get('level', 'INFO')
    if not isinstance(level, str) or not isinstance(getattr(logging, level.upper(), None), int):
        raise ValueError(f"Unknown logging.level: {level}")

    tz_name = log_config.get('timezone')
    if tz_name is not None:
        try:
            pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown logging.timezone: {tz_name}")

def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # Discovery defaults mirror DiscoveryConfig
    for key, default_value in asdict(DiscoveryConfig()).items():
        if key not in config['discovery']:
            config['discovery'][key] = default_value

    # Logging defaults
    if 'logging' not in config:
        config['logging'] = {}
    logging_defaults = {
        'level': 'INFO',
        'file': None,
        'console_output': True,
        'timezone': 'UTC'
    }
    for key, default_value in logging_defaults.items():
        if key not in config['logging']:
            config['logging'][key] = default_value

    return config

def get_discovery_config(config: Dict) -> DiscoveryConfig:
    """Build the immutable DiscoveryConfig from a loaded configuration"""
    return DiscoveryConfig.from_dict(config.get('discovery', {}))


class TimezoneFormatter(logging.Formatter):
    """Formatter rendering timestamps in a configured timezone"""

    def __init__(self, fmt=None, tz_name: str = 'UTC'):
        super().__init__(fmt)
        self.tz = pytz.timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')

def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    tz_name = log_config.get('timezone') or 'UTC'

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = TimezoneFormatter(log_format, tz_name)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))

    # Console handler
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    # File handler
    log_file = log_config.get('file')
    if log_file:
        # Create logs directory if it doesn't exist
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logger.info(f"Logging configured: level={level}, timezone={tz_name}, console={log_config.get('console_output', True)}, file={log_file}")

def get_sample_config() -> Dict:
    """Return a sample configuration for reference"""
    return {
        "discovery": {
            "bind_address": "0.0.0.0:0",
            "discovery_address": "239.255.255.250:1900",
            "discovery_wait_time": 3.0,
            "user_agent": "Linux/1.0 UPnP/1.1 satip-discovery/0.1",
            "prefer_source_addr": False,
            "request_timeout": 5.0,
            "max_replies": 64,
            "multicast_ttl": 2,
            "max_description_bytes": 262144
        },
        "logging": {
            "level": "INFO",
            "file": None,
            "console_output": True,
            "timezone": "UTC"
        }
    }
