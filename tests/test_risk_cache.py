from riskwise.schemas import RiskResult
from riskwise.services.risk import RiskResultCache


def _result(score: int = 7) -> RiskResult:
    return RiskResult(symbol="AAPL", overall_risk_score=score)


def test_reused_while_price_within_threshold():
    cache = RiskResultCache(threshold_pct=5.0)
    cache.put("u1", "AAPL", 100.0, _result())

    assert cache.get("u1", "AAPL", 104.0) is not None
    assert cache.get("u1", "AAPL", 95.5) is not None


def test_invalidated_when_price_moves_past_threshold():
    cache = RiskResultCache(threshold_pct=5.0)
    cache.put("u1", "AAPL", 100.0, _result())

    assert cache.get("u1", "AAPL", 105.0) is None
    assert cache.get("u1", "AAPL", 94.0) is None


def test_entries_are_per_user():
    cache = RiskResultCache()
    cache.put("u1", "AAPL", 100.0, _result())

    assert cache.get("u2", "AAPL", 100.0) is None


def test_neutral_fallback_is_not_memoized():
    cache = RiskResultCache()
    cache.put("u1", "AAPL", 100.0, _result())
    cache.put("u1", "AAPL", 100.0, RiskResult.neutral("AAPL", "no data"))

    assert cache.get("u1", "AAPL", 100.0) is None


def test_invalidate_symbol_and_drop_user():
    cache = RiskResultCache()
    cache.put("u1", "AAPL", 100.0, _result())
    cache.put("u2", "AAPL", 100.0, _result())
    cache.put("u2", "MSFT", 100.0, _result())

    cache.invalidate_symbol("AAPL")
    assert len(cache) == 1

    cache.drop_user("u2")
    assert len(cache) == 0
