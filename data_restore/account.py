"""
Account records stored in the leaves of the account tree.
"""
import rlp
from data_restore.crypto import generate_hash, ADDRESS_LENGTH
from data_restore.utils.encoding import to_hex, from_hex

EMPTY_LEAF = b''
EMPTY_LEAF_HASH = generate_hash(rlp.encode(EMPTY_LEAF))


class Account:
    """
    A live account: its address, nonce and per-token balances.

    Zero balances are never stored, so two accounts holding the same funds
    always encode (and hash) identically.
    """

    def __init__(self, address: bytes, nonce: int = 0, balances: dict = None):
        if len(address) != ADDRESS_LENGTH:
            raise ValueError(f"Address must be {ADDRESS_LENGTH} bytes, got {len(address)}")
        if nonce < 0:
            raise ValueError("Nonce cannot be negative")
        self.address = bytes(address)
        self.nonce = nonce
        self.balances = {}
        for token, amount in (balances or {}).items():
            self.set_balance(int(token), int(amount))

    def get_balance(self, token: int) -> int:
        return self.balances.get(token, 0)

    def set_balance(self, token: int, amount: int):
        if amount < 0:
            raise ValueError(f"Balance of token {token} cannot be negative")
        if amount == 0:
            self.balances.pop(token, None)
        else:
            self.balances[token] = amount

    def add_balance(self, token: int, amount: int):
        self.set_balance(token, self.get_balance(token) + amount)

    def sub_balance(self, token: int, amount: int):
        self.set_balance(token, self.get_balance(token) - amount)

    def has_zero_balances(self) -> bool:
        return not self.balances

    def copy(self) -> 'Account':
        return Account(self.address, self.nonce, dict(self.balances))

    def encode(self) -> bytes:
        """Canonical RLP encoding of the account, used as the leaf preimage."""
        balances = [[token, self.balances[token]] for token in sorted(self.balances)]
        return rlp.encode([self.address, self.nonce, balances])

    def leaf_hash(self) -> bytes:
        return generate_hash(self.encode())

    @classmethod
    def from_dict(cls, data: dict) -> 'Account':
        """Creates an Account from its JSON-friendly dictionary form."""
        return cls(
            address=from_hex(data['address']),
            nonce=int(data.get('nonce', 0)),
            balances={int(token): int(amount) for token, amount in data.get('balances', {}).items()},
        )

    def to_dict(self) -> dict:
        return {
            'address': to_hex(self.address),
            'nonce': self.nonce,
            'balances': {str(token): amount for token, amount in sorted(self.balances.items())},
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return (self.address == other.address
                and self.nonce == other.nonce
                and self.balances == other.balances)

    def __repr__(self) -> str:
        return (
            f"Account(address={to_hex(self.address)}, "
            f"nonce={self.nonce}, "
            f"balances={self.balances})"
        )


def leaf_hash_of(account: Account | None) -> bytes:
    """Leaf hash for a tree slot, empty slots hash to EMPTY_LEAF_HASH."""
    if account is None:
        return EMPTY_LEAF_HASH
    return account.leaf_hash()
