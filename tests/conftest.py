import os

import pytest


@pytest.fixture(autouse=True)
def clean_evm_env(monkeypatch):
    """Keep local EVM_* settings out of the tests."""
    for name in list(os.environ):
        if name.startswith("EVM_"):
            monkeypatch.delenv(name, raising=False)
