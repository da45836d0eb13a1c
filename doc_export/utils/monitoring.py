"""
Monitoring and metrics collection for the crawl engine.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


@dataclass
class MetricPoint:
    """Individual metric data point."""
    timestamp: float
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class Metric:
    """Metric container with history."""
    name: str
    description: str
    metric_type: str  # counter, gauge, histogram
    points: List[MetricPoint] = field(default_factory=list)
    current_value: float = 0.0


class MetricsCollector:
    """Collects crawl metrics in memory and mirrors them into Prometheus."""

    max_points = 1000

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.metrics: Dict[str, Metric] = {}
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port

        # Each collector owns its registry so several crawls can coexist in one process
        self.prometheus_registry = CollectorRegistry()
        self.prometheus_metrics = {
            'pages_fetched_total': Counter(
                'doc_export_pages_fetched_total',
                'Total number of pages fetched successfully',
                registry=self.prometheus_registry
            ),
            'fetch_failures_total': Counter(
                'doc_export_fetch_failures_total',
                'Total number of failed fetches',
                ['reason'],
                registry=self.prometheus_registry
            ),
            'links_rejected_total': Counter(
                'doc_export_links_rejected_total',
                'Total number of discovered links rejected by the link filter',
                ['rule'],
                registry=self.prometheus_registry
            ),
            'response_time_seconds': Histogram(
                'doc_export_response_time_seconds',
                'Response time for HTTP requests',
                registry=self.prometheus_registry
            ),
            'queue_size': Gauge(
                'doc_export_queue_size',
                'Number of URLs waiting in the frontier',
                registry=self.prometheus_registry
            ),
            'active_workers': Gauge(
                'doc_export_active_workers',
                'Number of workers currently processing a URL',
                registry=self.prometheus_registry
            ),
        }

    def start_prometheus_server(self):
        """Start Prometheus metrics HTTP server."""
        if not self.enable_prometheus:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.prometheus_registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def record_metric(self, name: str, value: float, labels: Optional[Dict[str, str]] = None,
                      description: str = "", metric_type: str = "gauge", delta: float = 0.0):
        """Record a metric value. ``delta`` is the counter increment mirrored to Prometheus."""
        labels = labels or {}

        if name not in self.metrics:
            self.metrics[name] = Metric(
                name=name,
                description=description,
                metric_type=metric_type
            )

        metric = self.metrics[name]
        metric.points.append(MetricPoint(timestamp=time.time(), value=value, labels=labels))
        metric.current_value = value

        if len(metric.points) > self.max_points:
            metric.points = metric.points[-self.max_points:]

        prom_metric = self.prometheus_metrics.get(name)
        if prom_metric is None:
            return
        if labels:
            prom_metric = prom_metric.labels(**labels)

        if metric_type == 'counter':
            prom_metric.inc(delta)
        elif metric_type == 'histogram':
            prom_metric.observe(value)
        else:
            prom_metric.set(value)

    def increment_counter(self, name: str, labels: Optional[Dict[str, str]] = None,
                          description: str = ""):
        """Increment a counter metric."""
        current_value = 0
        if name in self.metrics:
            current_value = self.metrics[name].current_value

        self.record_metric(name, current_value + 1, labels, description, "counter", delta=1)

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None,
                  description: str = ""):
        """Set a gauge metric value."""
        self.record_metric(name, value, labels, description, "gauge")

    def observe_histogram(self, name: str, value: float, labels: Optional[Dict[str, str]] = None,
                          description: str = ""):
        """Record a histogram observation."""
        self.record_metric(name, value, labels, description, "histogram")

    def get_metric(self, name: str) -> Optional[Metric]:
        """Get a metric by name."""
        return self.metrics.get(name)

    def get_current_values(self) -> Dict[str, float]:
        """Get current values of all metrics."""
        return {name: metric.current_value for name, metric in self.metrics.items()}


class CrawlerMonitor:
    """High-level monitoring interface for the crawl engine."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.start_time = time.time()

    def record_page_fetched(self, url: str, response_time: float):
        self.metrics.increment_counter('pages_fetched_total', description='Pages fetched')
        self.metrics.observe_histogram('response_time_seconds', response_time,
                                       description='HTTP response time')

    def record_fetch_failure(self, url: str, reason: str, response_time: float = 0.0):
        # "Client error: <details>" is labelled "Client error"
        category = reason.split(':', 1)[0]
        self.metrics.increment_counter('fetch_failures_total', {'reason': category}, 'Failed fetches')
        if response_time:
            self.metrics.observe_histogram('response_time_seconds', response_time,
                                           description='HTTP response time')

    def record_link_rejected(self, rule: str):
        self.metrics.increment_counter('links_rejected_total', {'rule': rule}, 'Rejected links')

    def update_queue_size(self, size: int):
        self.metrics.set_gauge('queue_size', size, description='URLs in queue')

    def update_active_workers(self, count: int):
        self.metrics.set_gauge('active_workers', count, description='Active workers')

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        current_values = self.metrics.get_current_values()
        runtime = time.time() - self.start_time
        pages = current_values.get('pages_fetched_total', 0)

        return {
            'runtime_seconds': runtime,
            'metrics': current_values,
            'rates': {
                'pages_per_second': pages / runtime if runtime > 0 else 0,
            }
        }
