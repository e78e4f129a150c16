"""Unit test environment helpers."""

import os

import pytest

_ISOLATED_PREFIXES = ("ATHENA_", "OTEL_")


@pytest.fixture(autouse=True)
def _minimal_env(monkeypatch):
    """Strip client and OTEL settings so unit tests never trace or read real config."""
    for name in list(os.environ):
        if name.startswith(_ISOLATED_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("AWS_REGION", raising=False)
    yield
