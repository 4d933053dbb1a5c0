"""CLI entry point for the order monitor.

Usage:
    python -m strikegold.main              # uses env vars for config
    python -m strikegold.main --dry-run    # prints config and exits

Environment variables:
    QUOTE_PROVIDER          "yahoo", "alpaca", "manual" or "none" (default: yahoo)
    ALPACA_API_KEY          Alpaca API key (required for QUOTE_PROVIDER=alpaca)
    ALPACA_SECRET_KEY       Alpaca secret key (required for QUOTE_PROVIDER=alpaca)
    PAPER_TRADING           "true" or "false" (default: true)
    STORAGE_BACKEND         "local", "gcs" or "memory" (default: local)
    DATA_DIR                Root directory for the local backend (default: data)
    GCS_BUCKET_NAME         GCS bucket name (required if storage_backend=gcs)
    GCS_PREFIX              GCS path prefix (default: "")
    MARKET_TIMEZONE         Timezone for day orders and expiry (default: US/Eastern)
    POLL_INTERVAL           Seconds between ticks (default: 30)
    DAILY_LOG               "true" or "false" (default: true)
    MAX_TICKS               Max ticks before exit, 0=unlimited (default: 0)
    LOG_LEVEL               Python logging level (default: INFO)

Variables are also read from a .env file in the working directory.
"""

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from strikegold.config import MonitorConfig
from strikegold.data.quotes import build_quote_provider
from strikegold.storage import build_storage_backend
from strikegold.trading.daily_log import DailyLog
from strikegold.trading.heartbeat import Heartbeat
from strikegold.trading.monitor import OrderMonitor
from strikegold.trading.orders import OrderStore


def _env_bool(key: str, default: bool = True) -> bool:
    val = os.getenv(key, str(default)).lower()
    return val in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def build_config() -> MonitorConfig:
    """Build MonitorConfig from environment variables.

    Only overrides MonitorConfig defaults when the env var is explicitly set.
    All defaults live in config.py as the single source of truth.
    """
    overrides = {}

    if os.getenv("POLL_INTERVAL"):
        overrides["poll_interval_seconds"] = _env_int("POLL_INTERVAL", 30)
    if os.getenv("QUOTE_PROVIDER"):
        overrides["quote_provider"] = os.getenv("QUOTE_PROVIDER").lower()
    if os.getenv("PAPER_TRADING"):
        overrides["paper_trading"] = _env_bool("PAPER_TRADING", True)
    if os.getenv("STORAGE_BACKEND"):
        overrides["storage_backend"] = os.getenv("STORAGE_BACKEND").lower()
    if os.getenv("DATA_DIR"):
        overrides["data_dir"] = os.getenv("DATA_DIR")
    if os.getenv("GCS_BUCKET_NAME"):
        overrides["gcs_bucket_name"] = os.getenv("GCS_BUCKET_NAME")
    if os.getenv("GCS_PREFIX"):
        overrides["gcs_prefix"] = os.getenv("GCS_PREFIX")
    if os.getenv("MARKET_TIMEZONE"):
        overrides["market_timezone"] = os.getenv("MARKET_TIMEZONE")
    if os.getenv("DAILY_LOG"):
        overrides["daily_log_enabled"] = _env_bool("DAILY_LOG", True)

    return MonitorConfig(**overrides)


def build_components(config: MonitorConfig) -> OrderMonitor:
    """Wire up storage, provider, store and monitor."""
    storage = build_storage_backend(config)
    provider = build_quote_provider(config, backend=storage)
    store = OrderStore(storage)
    heartbeat = Heartbeat(storage, config.stale_after_seconds)

    daily_log = None
    if config.daily_log_enabled:
        daily_log = DailyLog(log_dir=config.log_dir, backend=storage, tz=config.tz)
        daily_log.log_config(config)

    return OrderMonitor(
        store=store,
        provider=provider,
        config=config,
        heartbeat=heartbeat,
        daily_log=daily_log,
    )


async def main():
    dry_run = "--dry-run" in sys.argv
    load_dotenv()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("=" * 60)
    print("StrikeGold Order Monitor")
    print("=" * 60)

    config = build_config()

    print(f"  Quote provider:   {config.quote_provider}")
    print(f"  Paper trading:    {config.paper_trading}")
    print(f"  Storage backend:  {config.storage_backend}")
    if config.storage_backend == "gcs":
        print(f"  GCS bucket:       {config.gcs_bucket_name}")
        print(f"  GCS prefix:       {config.gcs_prefix}")
    elif config.storage_backend == "local":
        print(f"  Data dir:         {config.data_dir}")
    print(f"  Market timezone:  {config.market_timezone}")
    print(f"  Poll interval:    {config.poll_interval_seconds}s")
    print(f"  Daily log:        {'on' if config.daily_log_enabled else 'off'}")

    if dry_run:
        print("\n--dry-run: config looks good, exiting.")
        return

    monitor = build_components(config)

    max_ticks = _env_int("MAX_TICKS", 0) or None  # 0 means unlimited

    print(f"\nStarting monitor (poll={config.poll_interval_seconds}s, max_ticks={max_ticks})")
    print("=" * 60)

    try:
        await monitor.run(max_ticks=max_ticks)
    finally:
        monitor.stop()

    print("\nMonitor exited cleanly.")


if __name__ == "__main__":
    asyncio.run(main())
