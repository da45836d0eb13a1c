"""
Utility modules for the documentation exporter.
"""

from .config import Config, ConfigError, ConfigManager, CrawlPolicy, LayoutMode, load_config

__all__ = ['Config', 'ConfigError', 'ConfigManager', 'CrawlPolicy', 'LayoutMode', 'load_config']
