import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def clear_cache():
    """Rate-limit counters and cached metrics live in the cache; start each test empty."""
    cache.clear()
    yield
    cache.clear()
