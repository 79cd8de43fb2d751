"""Shared fixtures."""

import pytest

from tradingsession.wallet import LocalKeySigner

from .fakes import OTHER_KEY, OWNER_KEY, FakeChainReader, FakeExchange, FakeRelayer


@pytest.fixture
def signer():
    return LocalKeySigner(OWNER_KEY)


@pytest.fixture
def other_signer():
    return LocalKeySigner(OTHER_KEY)


@pytest.fixture
def relayer():
    return FakeRelayer()


@pytest.fixture
def chain():
    return FakeChainReader()


@pytest.fixture
def exchange():
    return FakeExchange()
