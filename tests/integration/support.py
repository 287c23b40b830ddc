from config import ApplicationConfig
from src.app.services.rate_limiter import RateLimitPolicy, RateLimiter, default_policies
from src.domain.entities import OperationClass

TEST_DB_URI = "sqlite+aiosqlite:///./test.db"


class TestConfig(ApplicationConfig):
    __test__ = False

    DB_URI = TEST_DB_URI
    TESTING = True
    SWEEPER_ENABLED = False
    HEARTBEAT_INTERVAL = 0
    LOG_LEVEL = "WARNING"


def relaxed_rate_limiter() -> RateLimiter:
    """Default policies with room for many logins from one test client"""
    policies = default_policies(TestConfig)
    policies[OperationClass.auth] = RateLimitPolicy(window_seconds=900, limit=1000)
    return RateLimiter(policies)
