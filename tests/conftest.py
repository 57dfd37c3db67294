import os

from fixtures.env import *  # noqa


def pytest_configure(config):
    """Set up environment variables before any modules are imported."""
    os.environ.setdefault("DEBUG", "false")
    os.environ["REQUIRE_TLS"] = "false"


pytest_configure(None)

from fixtures.k8s import *  # noqa
from fixtures.http import *  # noqa
