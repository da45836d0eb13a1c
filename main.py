#!/usr/bin/env python3
"""
Command line entry point: crawl a documentation site and export it to Markdown.
"""

import argparse
import asyncio
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from doc_export import __version__
from doc_export.crawler.scheduler import CrawlerScheduler, PageRecord
from doc_export.export.aggregator import DocumentAggregator, ExportError
from doc_export.utils.config import Config, ConfigError, LayoutMode, load_config
from doc_export.utils.logger import log_system_info, setup_logging
from doc_export.utils.monitoring import CrawlerMonitor, MetricsCollector


class CrawlerApp:
    """Main application class for the documentation exporter."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event: Optional[asyncio.Event] = None
        self._signals: List[int] = []

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, stopping crawl...")
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not supported on this platform or outside the main thread
                continue
            self._signals.append(signum)

    def remove_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for signum in self._signals:
            loop.remove_signal_handler(signum)
        self._signals.clear()

    async def crawl(self, config: Config) -> List[PageRecord]:
        """Run the crawl, stopping early if a shutdown signal arrives."""
        monitor = CrawlerMonitor(MetricsCollector(
            enable_prometheus=config.monitoring.metrics_enabled,
            prometheus_port=config.monitoring.prometheus_port
        ))
        monitor.metrics.start_prometheus_server()

        async with CrawlerScheduler(config.crawler, monitor=monitor) as scheduler:
            self.scheduler = scheduler
            crawl_task = asyncio.create_task(scheduler.crawl(config.seed_url))
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())

            done, _ = await asyncio.wait(
                [crawl_task, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED
            )

            if shutdown_task in done:
                scheduler.stop("Shutdown requested")
            else:
                shutdown_task.cancel()

            return await crawl_task

    async def run(self, config: Config) -> int:
        """Crawl, convert and write the documents. Returns the process exit code."""
        self._shutdown_event = asyncio.Event()
        self.setup_signal_handlers()
        total_start = time.monotonic()

        try:
            self.logger.info(f"[1/4] Initializing crawler ({config.crawler.max_concurrency} parallel workers)")
            self.logger.info(f"Seed URL: {config.seed_url}")
            if config.crawler.allowed_prefixes:
                self.logger.info(f"Allowed prefixes: {list(config.crawler.allowed_prefixes)}")
            if config.crawler.ignore_prefixes:
                self.logger.info(f"Ignored prefixes: {list(config.crawler.ignore_prefixes)}")

            crawl_start = time.monotonic()
            pages = await self.crawl(config)
            self.logger.info(f"[2/4] Found {len(pages)} pages in {time.monotonic() - crawl_start:.1f}s")

            convert_start = time.monotonic()
            aggregator = DocumentAggregator(config.output.directory, config.output.split_pages)
            paths = await aggregator.export(pages)
            size_mb = sum(path.stat().st_size for path in paths) / (1024 * 1024)
            self.logger.info(f"[3/4] Converted {len(pages)} pages to Markdown "
                             f"({size_mb:.1f}MB in {time.monotonic() - convert_start:.1f}s)")

            self.logger.info(f"[4/4] Document generated: {paths[0].name}")
            self.logger.info(f"Total execution time: {time.monotonic() - total_start:.1f}s")
            self.logger.info(f"Output file: {paths[0]}")

        except ExportError as e:
            self.logger.error(f"Export failed: {e}")
            return 1

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            self.remove_signal_handlers()

        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='doc-export',
        description="Crawl documentation sites and export them to Markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  doc-export -u https://docs.example.com/ -o out
  doc-export -u https://docs.example.com/guide/ -o out --allowed-prefix https://docs.example.com/guide/
  doc-export -u https://docs.example.com/ -o out --split-pages subdirectories
  doc-export --config export.yaml -u https://docs.example.com/ -o out
        """
    )

    parser.add_argument('-u', '--url', required=True, help='URL to start crawling from')
    parser.add_argument('-o', '--output', required=True, help='Output directory for the exported documents')
    parser.add_argument('-c', '--concurrency', type=int,
                        help='Maximum number of concurrent requests (default: 5)')
    parser.add_argument('-s', '--same-domain', action=argparse.BooleanOptionalAction, default=None,
                        help='Only crawl pages on the seed host (default: on)')
    parser.add_argument('--max-urls', type=int, help='Maximum URLs to crawl (default: 200)')
    parser.add_argument('--request-timeout', type=int, metavar='MILLISECONDS',
                        help='Request timeout in milliseconds (default: 5000)')
    parser.add_argument('--max-runtime', type=int, metavar='MILLISECONDS',
                        help='Maximum crawler run time in milliseconds (default: 30000)')
    parser.add_argument('--split-pages', choices=[mode.value for mode in LayoutMode],
                        help='How to split pages into Markdown files (default: combined)')
    parser.add_argument('--allowed-prefix', action='append', dest='allowed_prefixes', metavar='PREFIX',
                        help='Only crawl URLs starting with this prefix (repeatable)')
    parser.add_argument('--ignore-prefix', action='append', dest='ignore_prefixes', metavar='PREFIX',
                        help='Skip URLs starting with this prefix (repeatable)')
    parser.add_argument('--config', help='Path to a YAML configuration file')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    parser.add_argument('--log-file', help='Also write logs to this file')
    parser.add_argument('--json-logs', action='store_true', default=None, help='Emit JSON log lines')
    parser.add_argument('--version', action='version', version=f'doc-export {__version__}')

    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Map parsed arguments onto configuration sections. Unset options stay None."""
    return {
        'seed_url': args.url,
        'crawler': {
            'max_concurrency': args.concurrency,
            'same_domain': args.same_domain,
            'max_urls': args.max_urls,
            'request_timeout': args.request_timeout,
            'max_run_time': args.max_runtime,
            'allowed_prefixes': args.allowed_prefixes,
            'ignore_prefixes': args.ignore_prefixes,
        },
        'output': {
            'directory': str(Path(args.output).resolve()),
            'split_pages': args.split_pages,
        },
        'logging': {
            'level': args.log_level,
            'file': args.log_file,
            'json': args.json_logs,
        },
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, overrides_from_args(args))
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging)
    log_system_info()

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(config))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
