import pytest

from src.app.services.rate_limiter import RateLimitPolicy, RateLimiter, rate_limit_key
from src.domain.auth import AuthContext
from src.domain.entities import OperationClass, Role
from uuid import uuid4


@pytest.fixture
def limiter(monotonic):
    policies = {
        OperationClass.auth: RateLimitPolicy(window_seconds=900, limit=5),
        OperationClass.general: RateLimitPolicy(window_seconds=900, limit=3, failures_only=True),
        OperationClass.session_management: RateLimitPolicy(window_seconds=900, limit=2),
    }
    return RateLimiter(policies, clock=monotonic)


def test_sixth_auth_call_is_denied_with_retry_after(limiter, monotonic):
    for _ in range(5):
        assert limiter.allow("ip:10.0.0.1", OperationClass.auth).allowed

    monotonic.advance(60)
    decision = limiter.allow("ip:10.0.0.1", OperationClass.auth)

    assert decision.allowed is False
    assert decision.remaining == 0
    assert decision.retry_after == 840


def test_window_resets_after_it_elapses(limiter, monotonic):
    for _ in range(5):
        limiter.allow("ip:10.0.0.1", OperationClass.auth)
    assert not limiter.allow("ip:10.0.0.1", OperationClass.auth).allowed

    monotonic.advance(900)

    assert limiter.allow("ip:10.0.0.1", OperationClass.auth).allowed


def test_keys_and_classes_are_independent(limiter):
    for _ in range(2):
        limiter.allow("user:a", OperationClass.session_management)

    assert not limiter.allow("user:a", OperationClass.session_management).allowed
    assert limiter.allow("user:b", OperationClass.session_management).allowed
    assert limiter.allow("user:a", OperationClass.auth).allowed


def test_failures_only_class_ignores_successes(limiter):
    for _ in range(10):
        assert limiter.allow("ip:1.2.3.4", OperationClass.general).allowed


def test_failures_only_class_denies_after_failures(limiter):
    for _ in range(3):
        assert limiter.allow("ip:1.2.3.4", OperationClass.general).allowed
        limiter.record_failure("ip:1.2.3.4", OperationClass.general)

    decision = limiter.allow("ip:1.2.3.4", OperationClass.general)
    assert decision.allowed is False
    assert decision.retry_after >= 1


def test_record_failure_is_ignored_for_counting_classes(limiter):
    limiter.record_failure("user:a", OperationClass.session_management)
    limiter.record_failure("user:a", OperationClass.session_management)

    assert limiter.allow("user:a", OperationClass.session_management).allowed


def test_prune_drops_elapsed_buckets(limiter, monotonic):
    limiter.allow("ip:1", OperationClass.auth)
    limiter.allow("ip:2", OperationClass.auth)
    monotonic.advance(500)
    assert limiter.prune() == 0

    monotonic.advance(401)
    assert limiter.prune() == 2


def test_allow_drops_elapsed_buckets_on_its_own(limiter, monotonic):
    limiter.allow("ip:1", OperationClass.auth)
    limiter.record_failure("ip:2", OperationClass.general)
    monotonic.advance(901)

    limiter.allow("ip:3", OperationClass.auth)

    assert list(limiter._buckets) == [(OperationClass.auth, "ip:3")]


def test_rate_limit_key_prefers_verified_identity():
    auth = AuthContext(user_id=uuid4(), email="a@b.co", role=Role.STARTER, session_id="s1")

    assert rate_limit_key(auth, "10.0.0.1") == f"user:{auth.user_id}"
    assert rate_limit_key(None, "10.0.0.1") == "ip:10.0.0.1"
    assert rate_limit_key(None, None) == "ip:unknown"
