"""Tests for command-line argument parsing of the runtime entrypoint."""

from __future__ import annotations

import argparse
from datetime import datetime, timezone

import pytest

from profit_ledger.main import main_parse_as_of


def test_main_parse_as_of_converts_offset_to_utc() -> None:
    """Timestamps given in another offset are stored as UTC instants."""

    parsed_value = main_parse_as_of("2026-01-01T05:30:00+02:00")

    assert parsed_value == datetime(2026, 1, 1, 3, 30, tzinfo=timezone.utc)
    assert parsed_value.utcoffset().total_seconds() == 0
    assert parsed_value.isoformat() == "2026-01-01T03:30:00+00:00"


def test_main_parse_as_of_rejects_naive_and_malformed_values() -> None:
    """Naive and unparsable timestamps are argument errors."""

    with pytest.raises(argparse.ArgumentTypeError, match="UTC offset"):
        main_parse_as_of("2026-01-01T05:30:00")
    with pytest.raises(argparse.ArgumentTypeError, match="invalid ISO-8601"):
        main_parse_as_of("yesterday")
