"""Tests for screener.data.catalog."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from screener.data.catalog import MARKETS, CsvMarketCatalog, FMPMarketCatalog
from screener.data.models import Security
from screener.errors import ConfigurationError


class TestFMPMarketCatalog:

    def test_exchange_listing(self) -> None:
        client = MagicMock()
        client.company_screener.return_value = [
            {"symbol": "SAP.DE", "companyName": "SAP SE", "exchangeShortName": "XETRA"},
            {"symbol": "BMW.DE", "companyName": "BMW AG", "exchangeShortName": "XETRA"},
            {"symbol": "SAP.DE", "companyName": "SAP SE", "exchangeShortName": "XETRA"},
        ]
        securities = FMPMarketCatalog(client).list_securities("XETRA")

        client.company_screener.assert_called_once_with("XETRA")
        assert securities == [
            Security("BMW.DE", "BMW AG", "XETRA"),
            Security("SAP.DE", "SAP SE", "XETRA"),
        ]

    def test_index_constituents(self) -> None:
        client = MagicMock()
        client.index_constituents.return_value = [
            {"symbol": "MSFT", "name": "Microsoft", "exchange": "NASDAQ"},
            {"symbol": "AAPL", "name": "Apple", "exchange": "NASDAQ"},
        ]
        securities = FMPMarketCatalog(client).list_securities("SP500")

        client.index_constituents.assert_called_once_with("sp500-constituent")
        assert [s.symbol for s in securities] == ["AAPL", "MSFT"]

    def test_unknown_market(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown market"):
            FMPMarketCatalog(MagicMock()).list_securities("MOON")

    def test_blank_symbols_dropped(self) -> None:
        client = MagicMock()
        client.company_screener.return_value = [{"symbol": ""}, {"symbol": "X"}]
        securities = FMPMarketCatalog(client).list_securities("NYSE")
        assert [s.symbol for s in securities] == ["X"]


class TestCsvMarketCatalog:

    def test_reads_seed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "xetra.csv"
        path.write_text("symbol,name\nsap.de,SAP SE\nBMW.DE,BMW AG\n")
        securities = CsvMarketCatalog({"XETRA": path}).list_securities("XETRA")

        assert securities == [
            Security("BMW.DE", "BMW AG", "XETRA"),
            Security("SAP.DE", "SAP SE", "XETRA"),
        ]

    def test_missing_symbol_column(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.csv"
        path.write_text("ticker\nAAPL\n")
        with pytest.raises(ConfigurationError, match="symbol"):
            CsvMarketCatalog({"NYSE": path}).list_securities("NYSE")

    def test_unconfigured_market(self) -> None:
        with pytest.raises(ConfigurationError):
            CsvMarketCatalog({}).list_securities("NYSE")


class TestMarkets:

    def test_includes_exchanges_and_indices(self) -> None:
        kinds = {option.kind for option in MARKETS.values()}
        assert kinds == {"exchange", "index"}
        assert "XETRA" in MARKETS
        assert MARKETS["SP500"].kind == "index"
