"""Central configuration for the order monitor and payoff tooling."""

from dataclasses import dataclass
from datetime import time
from typing import Optional

import pytz


@dataclass
class MonitorConfig:
    """Central configuration. All parameters in one place."""

    # ==================== MONITOR LOOP ====================
    poll_interval_seconds: int = 30
    stale_after_seconds: int = 180
    strike_tolerance: float = 1e-4

    # ==================== MARKET CALENDAR ====================
    market_timezone: str = "US/Eastern"
    expiry_cutoff: time = time(16, 0)   # expiration instant = expiration date @ cutoff

    # ==================== QUOTE PROVIDER ====================
    quote_provider: str = "yahoo"       # "yahoo", "alpaca", "manual" or "none"
    paper_trading: bool = True          # Alpaca paper vs live credentials

    # ==================== PAYOFF SAMPLING ====================
    curve_width_factor: float = 0.6
    curve_steps: int = 90
    metrics_width_factor: float = 0.8
    metrics_steps: int = 200
    scenario_up_pct: float = 0.10
    scenario_down_pct: float = 0.10

    # ==================== STORAGE ====================
    storage_backend: str = "local"              # "local", "gcs" or "memory"
    data_dir: str = "data"                      # root for the local backend
    gcs_bucket_name: Optional[str] = None       # Required when storage_backend="gcs"
    gcs_prefix: str = ""                        # e.g. "prod" or "paper"

    # ==================== ACTIVITY LOG ====================
    daily_log_enabled: bool = True
    log_dir: str = "logs"

    @property
    def tz(self):
        """pytz timezone used for calendar-day and expiry comparisons."""
        return pytz.timezone(self.market_timezone)
