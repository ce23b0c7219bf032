# -*- coding: utf-8 -*-

"""
Shared fixtures for WebShield tests.
"""

import pytest

from webshield.defaults import get_default_policy
from webshield.store import PolicyStore, runtime_policy


@pytest.fixture(autouse=True)
def reset_runtime_policy():
    """
    Clears the process-wide runtime store around every test.
    The store accepts one policy per process; tests compile many.
    """
    runtime_policy.reset()
    yield
    runtime_policy.reset()


@pytest.fixture
def store():
    """Fresh, unpublished policy store."""
    return PolicyStore()


@pytest.fixture
def default_policy():
    """Private copy of the secure default policy."""
    return get_default_policy()


@pytest.fixture
def all_features_policy():
    """User policy enabling all six protective features, declared in reverse order."""
    return {
        "basicAuth": {
            "route": "/admin/**",
            "value": {"enabled": True, "name": "admin", "pass": "s3cret"},
        },
        "allowedMethodsRestricter": {"route": "/**", "value": "GET,POST"},
        "corsHandler": {"route": "/api/**", "value": {"origin": ["https://example.com"]}},
        "xssValidator": {"route": "/**", "value": {}},
        "rateLimiter": {"route": "/api/**", "value": {"max": 10, "window": "1m"}},
        "requestSizeLimiter": {"route": "/**", "value": {"maxRequestSizeInBytes": 1024}},
    }
