"""
Shared fixtures for the data_restore tests.
"""
import pytest
from data_restore.crypto import generate_key_pair, serialize_public_key, public_key_to_address
from data_restore.state import LedgerState


@pytest.fixture
def state():
    """Empty genesis state with a small tree."""
    return LedgerState.new(depth=8)


@pytest.fixture
def addresses():
    """Three addresses derived from fresh key pairs."""
    result = []
    for _ in range(3):
        _, pub_key = generate_key_pair()
        result.append(public_key_to_address(serialize_public_key(pub_key)))
    return result
