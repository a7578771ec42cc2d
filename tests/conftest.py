"""Shared pytest fixtures for worldsign tests."""

import pytest
from eth_account import Account

from fake_world import FakeWorld

# Well-known test vector: address 0x2c7536E3605D9C16a7a3D7b1898e529396a65c23
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TEST_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"

# RFC 6979 signature over the persona-creation message for "alice" in "test-ns"
KNOWN_PERSONA_SIGNATURE = (
    "32ade03d079e9be4e7cfa97a11746b6d21cca70ed68ff17ce3a0e351d00abd21"
    "08a75f6ccb44d9f7284cc15b8575b117ff59ce556b66b120758b77abe6523fb41c"
)


@pytest.fixture
def private_key():
    return TEST_PRIVATE_KEY


@pytest.fixture
def account():
    """A freshly generated account."""
    return Account.create()


@pytest.fixture
def fake_world():
    """Fake backend serving namespace 'test-ns'."""
    return FakeWorld(namespace="test-ns")
