import os
import pytest

POLICY_ENV_VARS = (
    "WHITELIST_NAMESPACES",
    "WHITELIST_REGISTRIES",
    "WEBHOOK_URL",
    "NOTIFIER_TIMEOUT",
    "NOTIFY_BUDGET",
    "TLS_CERT_PATH",
    "TLS_KEY_PATH",
    "PORT",
)


@pytest.fixture(autouse=True, scope="module")
def env():
    original_env = os.environ.copy()
    for var in POLICY_ENV_VARS:
        os.environ.pop(var, None)

    yield

    os.environ.clear()
    os.environ.update(original_env)
