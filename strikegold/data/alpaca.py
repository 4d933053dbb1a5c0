"""Alpaca-backed quote provider (BYO key/secret)."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Dict, List, Optional

import requests
from alpaca.common.exceptions import APIError
from alpaca.data.requests import OptionChainRequest, StockLatestTradeRequest

from strikegold.data.models import (
    OptionChainData,
    OptionContract,
    QuoteError,
    QuoteErrorKind,
)
from strikegold.data.quotes import normalize_symbol

if TYPE_CHECKING:
    from strikegold.clients import AlpacaClientManager

logger = logging.getLogger(__name__)


def translate_error(exc: Exception, context: str) -> QuoteError:
    """Map Alpaca/transport exceptions onto QuoteError kinds."""
    if isinstance(exc, APIError):
        status = getattr(exc, "status_code", None)
        if status in (401, 403):
            kind = QuoteErrorKind.UNAUTHORIZED
        elif status in (404, 422):
            kind = QuoteErrorKind.NOT_FOUND
        else:
            kind = QuoteErrorKind.NETWORK
        return QuoteError(kind, f"{context}: HTTP {status}: {exc}")
    if isinstance(exc, requests.exceptions.RequestException):
        return QuoteError(QuoteErrorKind.NETWORK, f"{context}: {exc}")
    return QuoteError(QuoteErrorKind.NETWORK, f"{context}: {exc}")


def _positive(value) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    return value if value > 0 else None


class AlpacaQuoteProvider:
    """
    Quotes from Alpaca Market Data.
    Latest stock trade for the underlying; option chain snapshots for contracts.
    """

    def __init__(self, alpaca_manager: AlpacaClientManager) -> None:
        self.manager = alpaca_manager

    def fetch_delayed_price(self, symbol: str) -> float:
        symbol = normalize_symbol(symbol)
        try:
            request = StockLatestTradeRequest(symbol_or_symbols=symbol)
            trades = self.manager.stock_client.get_stock_latest_trade(request)
        except Exception as e:
            raise translate_error(e, f"Alpaca latest trade for {symbol}") from e

        trade = trades.get(symbol) if trades else None
        price = _positive(getattr(trade, "price", None))
        if price is None:
            raise QuoteError(QuoteErrorKind.NOT_FOUND, f"No Alpaca trade for {symbol}")
        return price

    def fetch_option_chain(
        self, symbol: str, expiration: Optional[date] = None
    ) -> OptionChainData:
        symbol = normalize_symbol(symbol)
        params = {"underlying_symbol": symbol}
        if expiration is not None:
            params["expiration_date"] = expiration
        try:
            snapshots = self.manager.option_client.get_option_chain(OptionChainRequest(**params))
        except Exception as e:
            raise translate_error(e, f"Alpaca option chain for {symbol}") from e

        by_expiration: Dict[date, List[OptionContract]] = {}
        for occ_symbol, snapshot in (snapshots or {}).items():
            parsed = self.manager.parse_occ_symbol(occ_symbol)
            if parsed is None:
                logger.debug("Skipping unparseable option symbol %s", occ_symbol)
                continue
            _, exp, kind, strike = parsed
            quote = getattr(snapshot, "latest_quote", None)
            trade = getattr(snapshot, "latest_trade", None)
            by_expiration.setdefault(exp, []).append(
                OptionContract(
                    kind=kind,
                    strike=strike,
                    bid=_positive(getattr(quote, "bid_price", None)),
                    ask=_positive(getattr(quote, "ask_price", None)),
                    last=_positive(getattr(trade, "price", None)),
                )
            )

        expirations = sorted(by_expiration)
        if expiration is None:
            if not expirations:
                raise QuoteError(QuoteErrorKind.NOT_FOUND, f"No Alpaca options for {symbol}")
            expiration = expirations[0]
        contracts = by_expiration.get(expiration, [])
        return OptionChainData.from_contracts(contracts, expirations=expirations or [expiration])
