"""Unit tests for the data-freshness guard."""
import pytest

from arbitrage_engine.exceptions import StaleData
from arbitrage_engine.validation.freshness import check_data_freshness, normalize_timestamp

NOW = 1_700_000_000.0


class TestFreshness:
    """Test rejection of old and simulated payloads."""

    def test_fresh_payload_passes(self):
        payload = {"token": "WETH", "timestamp": NOW - 10, "buy": {"venue": "Uniswap V2"}}
        assert check_data_freshness(payload, max_age_seconds=60, now=NOW) == NOW - 10

    def test_millisecond_timestamp(self):
        payload = {"timestamp": (NOW - 5) * 1000}
        assert check_data_freshness(payload, now=NOW) == pytest.approx(NOW - 5)

    def test_old_payload_rejected(self):
        with pytest.raises(StaleData) as exc_info:
            check_data_freshness({"timestamp": NOW - 120}, max_age_seconds=60, now=NOW)

        assert exc_info.value.stage == "freshness"
        assert exc_info.value.details["age_seconds"] == pytest.approx(120)

    def test_missing_timestamp_rejected(self):
        with pytest.raises(StaleData):
            check_data_freshness({"token": "WETH"}, now=NOW)

    @pytest.mark.parametrize("flag", ["simulated", "is_simulated", "mock", "is_mock"])
    def test_simulation_flags(self, flag):
        with pytest.raises(StaleData):
            check_data_freshness({"timestamp": NOW, flag: True}, now=NOW)

    def test_marker_source(self):
        with pytest.raises(StaleData):
            check_data_freshness({"timestamp": NOW, "source": "Placeholder"}, now=NOW)

    def test_marker_in_nested_value(self):
        payload = {"timestamp": NOW, "buy": {"venue": "Demo venue"}}
        with pytest.raises(StaleData):
            check_data_freshness(payload, now=NOW)

    def test_markers_match_whole_words_only(self):
        payload = {"timestamp": NOW, "sell": {"venue": "Contest Exchange"}}
        assert check_data_freshness(payload, now=NOW) == NOW

    def test_markers_ignored_when_real_data_not_required(self):
        payload = {"timestamp": NOW, "simulated": True, "source": "mock"}
        assert check_data_freshness(payload, now=NOW, real_data_only=False) == NOW

    def test_normalize_timestamp(self):
        assert normalize_timestamp(None) is None
        assert normalize_timestamp(True) is None
        assert normalize_timestamp("later") is None
        assert normalize_timestamp("1700000000") == NOW
