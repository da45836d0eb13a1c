"""
Configuration management for the documentation exporter.
"""

import enum
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import yaml


DEFAULT_USER_AGENT = 'Mozilla/5.0 DocCrawler/1.0'


class ConfigError(ValueError):
    """Raised when configuration values are missing or invalid."""
    pass


class LayoutMode(enum.Enum):
    """How exported pages are split into Markdown files."""
    COMBINED = 'combined'
    SUBDIRECTORIES = 'subdirectories'
    FLAT = 'flat'


@dataclass(frozen=True)
class CrawlPolicy:
    """Crawl boundaries and budgets. Times are in milliseconds."""
    max_concurrency: int = 5
    same_domain: bool = True
    max_urls: int = 200
    request_timeout: int = 5000
    max_run_time: int = 30000
    allowed_prefixes: Tuple[str, ...] = ()
    ignore_prefixes: Tuple[str, ...] = ()
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout / 1000

    @property
    def max_run_time_seconds(self) -> float:
        return self.max_run_time / 1000


@dataclass(frozen=True)
class OutputConfig:
    """Configuration for exported documents."""
    directory: str = 'output'
    split_pages: LayoutMode = LayoutMode.COMBINED


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: Optional[str] = None
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False


@dataclass(frozen=True)
class MonitoringConfig:
    """Configuration for monitoring."""
    metrics_enabled: bool = False
    prometheus_port: int = 8000


@dataclass(frozen=True)
class Config:
    """Main configuration class."""
    seed_url: str
    crawler: CrawlPolicy = field(default_factory=CrawlPolicy)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def _section(cls, data: Optional[Dict[str, Any]], name: str):
    """Build a config section dataclass, rejecting unknown keys."""
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}' section: {', '.join(sorted(unknown))}")
    return cls(**data)


def _prefix_tuple(name: str, value: Any) -> Tuple[str, ...]:
    """Accept a single prefix string or a list of prefixes."""
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"{name} must be a string or a list of strings, got {value!r}")
    return tuple(value)


class ConfigManager:
    """Loads configuration from YAML and command line overrides, then validates it."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None

    def _read_file(self) -> Dict[str, Any]:
        if self.config_path is None:
            return {}
        if not self.config_path.exists():
            raise ConfigError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as file:
            try:
                data = yaml.safe_load(file)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file must contain a mapping: {self.config_path}")
        return data

    def load_config(self, overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
        """
        Load configuration.

        Args:
            overrides: Per-section values that take precedence over the file,
                e.g. ``{'crawler': {'max_urls': 50}}``. A top-level
                ``seed_url`` key is also accepted.

        Returns:
            Validated Config instance
        """
        config_data = self._read_file()
        for section, values in (overrides or {}).items():
            if section == 'seed_url':
                if values is not None:
                    config_data['seed_url'] = values
                continue
            merged = dict(config_data.get(section) or {})
            merged.update({k: v for k, v in values.items() if v is not None})
            config_data[section] = merged

        crawler_data = dict(config_data.get('crawler') or {})
        for key in ('allowed_prefixes', 'ignore_prefixes'):
            if crawler_data.get(key) is not None:
                crawler_data[key] = _prefix_tuple(key, crawler_data[key])

        output_data = dict(config_data.get('output') or {})
        if 'split_pages' in output_data:
            try:
                output_data['split_pages'] = LayoutMode(output_data['split_pages'])
            except ValueError as e:
                choices = ', '.join(mode.value for mode in LayoutMode)
                raise ConfigError(f"split_pages must be one of: {choices}") from e

        try:
            self._config = Config(
                seed_url=config_data.get('seed_url') or '',
                crawler=_section(CrawlPolicy, crawler_data, 'crawler'),
                output=_section(OutputConfig, output_data, 'output'),
                logging=_section(LoggingConfig, config_data.get('logging'), 'logging'),
                monitoring=_section(MonitoringConfig, config_data.get('monitoring'), 'monitoring'),
            )
        except TypeError as e:
            raise ConfigError(str(e)) from e

        validate_config(self._config)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ConfigError("Configuration not loaded. Call load_config() first.")
        return self._config


def _require_positive_int(name: str, value: Any):
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")


def _require_type(name: str, value: Any, expected: type, description: str):
    if not isinstance(value, expected):
        raise ConfigError(f"{name} must be {description}, got {value!r}")


def validate_policy(policy: CrawlPolicy):
    """Validate crawl policy values."""
    _require_type('same_domain', policy.same_domain, bool, 'true or false')
    _require_type('user_agent', policy.user_agent, str, 'a string')
    _require_positive_int('max_concurrency', policy.max_concurrency)
    _require_positive_int('max_urls', policy.max_urls)
    _require_positive_int('request_timeout', policy.request_timeout)
    _require_positive_int('max_run_time', policy.max_run_time)

    for name in ('allowed_prefixes', 'ignore_prefixes'):
        for prefix in getattr(policy, name):
            if not isinstance(prefix, str) or not prefix:
                raise ConfigError(f"{name} entries must be non-empty strings")


def validate_seed_url(url: str):
    """The seed must be an absolute http(s) URL."""
    if not url:
        raise ConfigError("A seed URL must be provided")
    _require_type('seed_url', url, str, 'a string')
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ConfigError(f"Invalid seed URL {url!r}: {e}") from e
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        raise ConfigError(f"Seed URL must be an absolute http(s) URL, got {url!r}")


def validate_config(config: Config):
    """Validate configuration values."""
    validate_seed_url(config.seed_url)
    validate_policy(config.crawler)

    if not config.output.directory:
        raise ConfigError("Output directory must be provided")
    _require_type('output directory', config.output.directory, str, 'a string')

    if not isinstance(config.output.split_pages, LayoutMode):
        raise ConfigError(f"Unknown layout mode: {config.output.split_pages!r}")

    _require_type('logging level', config.logging.level, str, 'a string')
    if not isinstance(getattr(logging, config.logging.level.upper(), None), int):
        raise ConfigError(f"Unknown log level: {config.logging.level}")
    if config.logging.file is not None:
        _require_type('logging file', config.logging.file, str, 'a string')
    _require_type('logging format', config.logging.format, str, 'a string')
    _require_type('logging json', config.logging.json, bool, 'true or false')

    _require_type('metrics_enabled', config.monitoring.metrics_enabled, bool, 'true or false')
    _require_positive_int('prometheus_port', config.monitoring.prometheus_port)
    if config.monitoring.prometheus_port > 65535:
        raise ConfigError("prometheus_port must be between 1 and 65535")

    logging.getLogger(__name__).debug("Configuration validation passed")


def load_config(config_path: Optional[str] = None,
                overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
    """Load configuration from file and overrides."""
    return ConfigManager(config_path).load_config(overrides)

