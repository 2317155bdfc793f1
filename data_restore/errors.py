"""
Errors raised while replaying operations against the ledger.

Every precondition failure is detected before any state is touched, so a
raised LedgerError always leaves the ledger exactly as it was.
"""


class LedgerError(Exception):
    """Raised when an operation cannot be applied to the ledger."""
    pass


class InvalidOperation(LedgerError):
    """Raised for malformed operations (negative amounts, bad addresses)."""
    pass


class UnknownAddress(LedgerError):
    def __init__(self, address: bytes):
        self.address = address
        super().__init__(f"Address 0x{address.hex()} is not bound to any account")


class UnknownAccountId(LedgerError):
    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"Account {account_id} does not exist")


class DuplicateAddress(LedgerError):
    def __init__(self, address: bytes, bound_id: int, requested_id: int | None = None):
        self.address = address
        self.bound_id = bound_id
        self.requested_id = requested_id
        super().__init__(
            f"Address 0x{address.hex()} is already bound to account {bound_id}"
        )


class AccountIdMismatch(LedgerError):
    """The chain-assigned account id disagrees with the replayed one."""

    def __init__(self, address: bytes, expected_id: int, actual_id: int):
        self.address = address
        self.expected_id = expected_id
        self.actual_id = actual_id
        super().__init__(
            f"Address 0x{address.hex()} resolves to account {actual_id}, "
            f"operation expects {expected_id}"
        )


class NonceMismatch(LedgerError):
    def __init__(self, account_id: int, expected: int, got: int):
        self.account_id = account_id
        self.expected = expected
        self.got = got
        super().__init__(
            f"Invalid nonce for account {account_id}. Expected {expected}, got {got}"
        )


class InsufficientBalance(LedgerError):
    def __init__(self, account_id: int, token: int, balance: int, required: int):
        self.account_id = account_id
        self.token = token
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient balance of token {token} in account {account_id}: "
            f"{balance} < {required}"
        )


class CapacityExceeded(LedgerError):
    def __init__(self, account_id: int, capacity: int):
        self.account_id = account_id
        self.capacity = capacity
        super().__init__(
            f"Account id {account_id} is outside the tree capacity of {capacity}"
        )


class NonZeroBalanceOnClose(LedgerError):
    def __init__(self, account_id: int, balances: dict):
        self.account_id = account_id
        self.balances = dict(balances)
        super().__init__(
            f"Cannot close account {account_id} with non-zero balances {self.balances}"
        )


class RestoreError(Exception):
    """
    Aborts a restore run.

    Carries the block and the operation that could not be applied, so the
    caller can report exactly where the replayed log diverged.
    """

    def __init__(self, message: str, block_number: int | None = None,
                 op_index: int | None = None, operation=None):
        self.block_number = block_number
        self.op_index = op_index
        self.operation = operation
        super().__init__(message)


class RootMismatch(RestoreError):
    def __init__(self, block_number: int, expected: bytes, computed: bytes):
        self.expected = expected
        self.computed = computed
        super().__init__(
            f"Root hash mismatch at block {block_number}: "
            f"chain 0x{expected.hex()}, replay 0x{computed.hex()}",
            block_number=block_number,
        )
