"""
Markdown export layer.
"""

from .aggregator import DocumentAggregator, ExportError
from .converter import DocumentConverter

__all__ = ['DocumentAggregator', 'ExportError', 'DocumentConverter']
