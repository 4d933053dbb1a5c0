"""Alpaca API client management."""

import os
import re
from datetime import date
from typing import Optional

from alpaca.data.historical import StockHistoricalDataClient
from alpaca.data.historical.option import OptionHistoricalDataClient

from strikegold.data.models import OptionType

_OCC_PATTERN = re.compile(r'^([A-Z.]+)(\d{6})([CP])(\d{8})$')


class AlpacaClientManager:
    """Manages Alpaca market data clients (BYO key/secret)."""

    def __init__(self, paper: bool = True):
        self.paper = paper
        self.api_key = os.getenv('ALPACA_API_KEY')
        self.secret_key = os.getenv('ALPACA_SECRET_KEY')

        if not self.api_key or not self.secret_key:
            raise ValueError(
                "Alpaca credentials not found. Set environment variables:\n"
                "  ALPACA_API_KEY and ALPACA_SECRET_KEY"
            )

        self._stock_client = None
        self._option_client = None

    @property
    def stock_client(self) -> StockHistoricalDataClient:
        if self._stock_client is None:
            self._stock_client = StockHistoricalDataClient(
                api_key=self.api_key, secret_key=self.secret_key
            )
        return self._stock_client

    @property
    def option_client(self) -> OptionHistoricalDataClient:
        if self._option_client is None:
            self._option_client = OptionHistoricalDataClient(
                api_key=self.api_key, secret_key=self.secret_key
            )
        return self._option_client

    @staticmethod
    def parse_occ_symbol(symbol: str) -> Optional[tuple]:
        """Split an OCC option symbol into (underlying, expiration, type, strike)."""
        match = _OCC_PATTERN.match(symbol or "")
        if not match:
            return None
        underlying, ymd, right, strike = match.groups()
        expiration = date(2000 + int(ymd[:2]), int(ymd[2:4]), int(ymd[4:6]))
        kind = OptionType.CALL if right == 'C' else OptionType.PUT
        return underlying, expiration, kind, int(strike) / 1000.0
