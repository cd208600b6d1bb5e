"""
Tests for rate resolution, fee quotes and partner limits.
"""

from datetime import timedelta

import pytest

from backoffice.limits import period_key, check_limit, use_limit, try_consume, set_limit
from backoffice.rates import get_active_rate, upsert_rate, quote_fee, find_overlapping_rates

from conftest import NOW


def _rate(store, **overrides):
    config = {"partnerId": "p1", "serviceId": "s1", "baseRatePct": 2.5, "fixedFee": 3.5,
              "minAmount": 100, "maxAmount": 10000, "effectiveDate": "2024-01-01T00:00:00+00:00",
              "isActive": True}
    config.update(overrides)
    return upsert_rate(store, config, updated_by="tester")


# =============================================================================
# Rate resolution
# =============================================================================


class TestActiveRate:

    @pytest.mark.parametrize("amount,found", [(50, False), (100, True), (5000, True),
                                              (10000, True), (10001, False)])
    def test_amount_band(self, store, amount, found):
        rate = _rate(store)
        result = get_active_rate(store, "p1", "s1", amount, now=NOW)
        assert (result is not None) is found
        if found:
            assert result["id"] == rate["id"]

    def test_open_bounds(self, store):
        _rate(store, minAmount=None, maxAmount=None)
        assert get_active_rate(store, "p1", "s1", 10 ** 9, now=NOW) is not None

    def test_other_pair_does_not_match(self, store):
        _rate(store)
        assert get_active_rate(store, "p2", "s1", 500, now=NOW) is None
        assert get_active_rate(store, "p1", "s2", 500, now=NOW) is None

    def test_inactive_future_and_expired_rates_are_skipped(self, store):
        _rate(store, isActive=False)
        _rate(store, effectiveDate=(NOW + timedelta(days=1)).isoformat())
        _rate(store, expirationDate=(NOW - timedelta(days=1)).isoformat())
        assert get_active_rate(store, "p1", "s1", 500, now=NOW) is None

    def test_expiration_in_future_still_applies(self, store):
        rate = _rate(store, expirationDate=(NOW + timedelta(days=30)).isoformat())
        assert get_active_rate(store, "p1", "s1", 500, now=NOW)["id"] == rate["id"]

    def test_resolution_is_deterministic(self, store):
        _rate(store)
        _rate(store, baseRatePct=3.0)
        picks = {get_active_rate(store, "p1", "s1", 500, now=NOW)["id"] for _ in range(5)}
        assert len(picks) == 1

    def test_newest_overlapping_rate_wins(self, store):
        _rate(store)
        newer = _rate(store, baseRatePct=3.0)
        assert get_active_rate(store, "p1", "s1", 500, now=NOW)["id"] == newer["id"]

    def test_upsert_stamps_author(self, store):
        rate = _rate(store)
        assert rate["updatedBy"] == "tester"
        assert rate["updatedAt"]


class TestRateDiagnostics:

    def test_quote_fee(self):
        assert quote_fee({"baseRatePct": 2.5, "fixedFee": 3.5}, 1000) == 28.5

    def test_quote_fee_missing_parts(self):
        assert quote_fee({}, 1000) == 0

    def test_overlap_reported(self, store):
        old = _rate(store)
        new = _rate(store, minAmount=5000, maxAmount=20000)
        overlaps = find_overlapping_rates(store)
        assert len(overlaps) == 1
        assert set(overlaps[0]["rateIds"]) == {old["id"], new["id"]}
        assert overlaps[0]["winner"] == new["id"]

    def test_disjoint_bands_and_windows_do_not_overlap(self, store):
        _rate(store, maxAmount=1000)
        _rate(store, minAmount=2000)
        _rate(store, serviceId="s2", expirationDate="2024-02-01T00:00:00+00:00")
        _rate(store, serviceId="s2", effectiveDate="2024-03-01T00:00:00+00:00")
        assert find_overlapping_rates(store) == []

    def test_overlap_filter(self, store):
        _rate(store)
        _rate(store)
        assert find_overlapping_rates(store, partner_id="p2") == []


# =============================================================================
# Limits
# =============================================================================


@pytest.fixture
def limited(store):
    """Daily limit of 1000 with 900 already used."""
    set_limit(store, "p1", "daily", 1000, now=NOW)
    use_limit(store, "p1", 900, "daily", now=NOW)
    return store


class TestLimits:

    def test_period_keys(self):
        assert period_key("daily", NOW) == "2024-06-15"
        assert period_key("transaction", NOW) == "2024-06-15"
        assert period_key("monthly", NOW) == "2024-06"

    def test_check_against_remaining(self, limited):
        assert check_limit(limited, "p1", 50, "daily", now=NOW) is True
        assert check_limit(limited, "p1", 100, "daily", now=NOW) is True
        assert check_limit(limited, "p1", 200, "daily", now=NOW) is False

    def test_use_adds_to_usage(self, limited):
        row = use_limit(limited, "p1", 50, "daily", now=NOW)
        assert row["used"] == 950
        assert row["amount"] == 1000

    def test_no_row_passes_check(self, store):
        assert check_limit(store, "p9", 10 ** 9, "monthly", now=NOW) is True

    def test_use_opens_row_with_default_ceiling(self, store):
        row = use_limit(store, "p1", 10, "daily", now=NOW)
        assert row["amount"] == 100000
        assert use_limit(store, "p1", 10, "monthly", now=NOW)["amount"] == 1000000

    def test_new_period_starts_fresh(self, limited):
        tomorrow = NOW + timedelta(days=1)
        assert check_limit(limited, "p1", 500, "daily", now=tomorrow) is True

    def test_try_consume_is_all_or_nothing(self, limited):
        assert try_consume(limited, "p1", 200, "daily", now=NOW) is False
        assert check_limit(limited, "p1", 100, "daily", now=NOW) is True
        assert try_consume(limited, "p1", 100, "daily", now=NOW) is True
        assert try_consume(limited, "p1", 1, "daily", now=NOW) is False

    def test_set_limit_keeps_usage(self, limited):
        row = set_limit(limited, "p1", "daily", 5000, now=NOW)
        assert row["used"] == 900
        assert len(limited.read()["limits"]) == 1

    def test_invalid_type(self, store):
        with pytest.raises(ValueError, match="limit type"):
            check_limit(store, "p1", 10, "weekly")
