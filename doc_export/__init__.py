"""
Documentation Exporter

Crawls a documentation site and exports it as Markdown.
"""

__version__ = "1.0.0"
__description__ = "Crawl documentation websites and export them to Markdown"
