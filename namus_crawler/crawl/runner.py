from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

import httpx

from namus_crawler.config import CrawlerSettings, load_settings

from .base import Category, CrawlOutput
from .client import NamUsClient
from .errors import DiscoveryError
from .limiter import ConcurrencyLimiter
from .orchestrator import CrawlPipeline
from .pipeline import write_run_output

logger = logging.getLogger(__name__)


async def crawl(settings: CrawlerSettings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> CrawlOutput:
    """Run one crawl with the given settings. Raises DiscoveryError when it cannot start."""
    limiter = ConcurrencyLimiter(settings.max_in_flight)
    async with NamUsClient(
        base_url=settings.base_url,
        timeout=settings.timeout,
        page_size=settings.page_size,
        headers=settings.headers(),
        transport=transport,
    ) as client:
        pipeline = CrawlPipeline(client, settings.category, limiter)
        return await pipeline.run()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Crawl NamUs cases state by state")
    parser.add_argument(
        "--category",
        type=Category.parse,
        default=None,
        help="missing | unidentified | unclaimed (default: NAMUS_CATEGORY or missing)",
    )
    parser.add_argument("--concurrency", type=int, default=None, help="Max requests in flight (default: 5)")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    parser.add_argument("--page-size", type=int, default=None, help="Search page size per state")
    parser.add_argument("--base-url", default=None, help="API root URL")
    default_out = os.path.join(os.getcwd(), "data", "scraped", "cases")
    parser.add_argument("--out-dir", default=default_out, help="Output directory for JSONL files")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(
            category=args.category,
            max_in_flight=args.concurrency,
            timeout=args.timeout,
            page_size=args.page_size,
            base_url=args.base_url,
        )
    except ValueError as exc:
        parser.error(str(exc))
        return 2

    try:
        output = asyncio.run(crawl(settings))
    except DiscoveryError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    for path in write_run_output(output, args.out_dir):
        print(path)
    summary = output.summary()
    print(" ".join(f"{k}={v}" for k, v in summary.items()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
