"""
Typed rollup operations, as decoded from chain data.

Priority operations (Deposit, FullExit) originate on the base chain and carry
no rollup nonce. Transactions (Transfer, TransferToNew, Withdraw, Close) are
signed by the account owner and carry the exact nonce they consume.

Decoded operations may also carry the account ids the chain assigned; when
present these are cross-checked during replay.
"""
import msgpack
from dataclasses import dataclass, fields
from typing import Optional
from data_restore.crypto import generate_hash, ADDRESS_LENGTH
from data_restore.errors import InvalidOperation
from data_restore.utils.encoding import to_hex, from_hex

DEPOSIT = "DEPOSIT"
FULL_EXIT = "FULL_EXIT"
TRANSFER = "TRANSFER"
TRANSFER_TO_NEW = "TRANSFER_TO_NEW"
WITHDRAW = "WITHDRAW"
CLOSE = "CLOSE"

PRIORITY_OP_TYPES = (DEPOSIT, FULL_EXIT)
TX_TYPES = (TRANSFER, TRANSFER_TO_NEW, WITHDRAW, CLOSE)

_ADDRESS_FIELDS = ('address', 'from_address', 'to_address')
_AMOUNT_FIELDS = ('token', 'amount', 'fee', 'nonce')
_ID_FIELDS = ('account_id', 'to_account_id')


class Operation:
    """Base class of all operation kinds."""
    op_type: str = ""

    @property
    def is_priority(self) -> bool:
        return self.op_type in PRIORITY_OP_TYPES

    def _validate(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _ADDRESS_FIELDS:
                if not isinstance(value, bytes) or len(value) != ADDRESS_LENGTH:
                    raise InvalidOperation(
                        f"{self.op_type}: {f.name} must be {ADDRESS_LENGTH} bytes"
                    )
            elif f.name in _AMOUNT_FIELDS:
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise InvalidOperation(
                        f"{self.op_type}: {f.name} must be a non-negative integer, got {value!r}"
                    )
            elif f.name in _ID_FIELDS and value is not None:
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise InvalidOperation(
                        f"{self.op_type}: {f.name} must be a non-negative integer, got {value!r}"
                    )

    def __post_init__(self):
        self._validate()

    @classmethod
    def from_dict(cls, data: dict) -> 'Operation':
        """Creates an operation of the right kind from its tagged dictionary."""
        if not isinstance(data, dict):
            raise InvalidOperation(f"Operation must be an object, got {type(data).__name__}")

        op_type = data.get('type')
        op_cls = OPERATION_TYPES.get(op_type)
        if op_cls is None:
            raise InvalidOperation(f"Unknown operation type: {op_type}")

        kwargs = {}
        for f in fields(op_cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if f.name in _ADDRESS_FIELDS and isinstance(value, str):
                try:
                    value = from_hex(value)
                except ValueError as e:
                    raise InvalidOperation(f"{op_type}: invalid {f.name}: {e}") from e
            kwargs[f.name] = value

        try:
            return op_cls(**kwargs)
        except TypeError as e:
            raise InvalidOperation(f"{op_type}: {e}") from e

    def to_dict(self) -> dict:
        data = {'type': self.op_type}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _ADDRESS_FIELDS:
                value = to_hex(value)
            data[f.name] = value
        return data

    def get_signing_data(self) -> bytes:
        """Canonical byte representation of the operation."""
        return msgpack.packb(self.to_dict(), use_bin_type=True)

    @property
    def id(self) -> bytes:
        """Hash identifying the operation in logs and restore errors."""
        return generate_hash(self.get_signing_data())


@dataclass(frozen=True)
class Deposit(Operation):
    address: bytes
    token: int
    amount: int
    account_id: Optional[int] = None
    op_type = DEPOSIT


@dataclass(frozen=True)
class FullExit(Operation):
    address: bytes
    account_id: Optional[int] = None
    op_type = FULL_EXIT


@dataclass(frozen=True)
class Transfer(Operation):
    from_address: bytes
    to_address: bytes
    token: int
    amount: int
    fee: int
    nonce: int
    account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    op_type = TRANSFER


@dataclass(frozen=True)
class TransferToNew(Operation):
    from_address: bytes
    to_address: bytes
    token: int
    amount: int
    fee: int
    nonce: int
    account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    op_type = TRANSFER_TO_NEW


@dataclass(frozen=True)
class Withdraw(Operation):
    from_address: bytes
    token: int
    amount: int
    fee: int
    nonce: int
    account_id: Optional[int] = None
    op_type = WITHDRAW


@dataclass(frozen=True)
class Close(Operation):
    from_address: bytes
    nonce: int
    account_id: Optional[int] = None
    op_type = CLOSE


OPERATION_TYPES = {
    DEPOSIT: Deposit,
    FULL_EXIT: FullExit,
    TRANSFER: Transfer,
    TRANSFER_TO_NEW: TransferToNew,
    WITHDRAW: Withdraw,
    CLOSE: Close,
}
