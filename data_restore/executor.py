"""
Per-operation state transitions.

Each handler checks every precondition first and only then writes to the
tree and index, so a failing operation leaves no trace.
"""
import logging
from data_restore.account import Account
from data_restore.address_index import AddressIndex
from data_restore.errors import (
    AccountIdMismatch,
    DuplicateAddress,
    InsufficientBalance,
    NonceMismatch,
    NonZeroBalanceOnClose,
    UnknownAccountId,
    UnknownAddress,
)
from data_restore.operations import Close, Deposit, FullExit, Transfer, TransferToNew, Withdraw
from data_restore.tree import AccountStateTree

logger = logging.getLogger(__name__)


class OperationExecutor:
    def __init__(self, tree: AccountStateTree, index: AddressIndex):
        self.tree = tree
        self.index = index

    # ==========================================================================
    # PRECONDITION HELPERS
    # ==========================================================================

    def _resolve(self, address: bytes, expected_id: int | None = None) -> tuple[int, Account]:
        """Resolve a bound address to its id and account."""
        account_id = self.index.resolve(address)
        if account_id is None:
            raise UnknownAddress(address)
        if expected_id is not None and expected_id != account_id:
            raise AccountIdMismatch(address, expected_id, account_id)

        account = self.tree.get(account_id)
        if account is None:
            raise UnknownAccountId(account_id)
        return account_id, account

    def _allocate(self, address: bytes, expected_id: int | None = None) -> int:
        """Pick the id a new address will get, without binding it yet."""
        bound_id = self.index.resolve(address)
        if bound_id is not None:
            raise DuplicateAddress(address, bound_id, expected_id)

        account_id = self.tree.next_free_id()
        if expected_id is not None and expected_id != account_id:
            raise AccountIdMismatch(address, expected_id, account_id)
        return account_id

    @staticmethod
    def _check_nonce(account_id: int, account: Account, nonce: int):
        if nonce != account.nonce:
            raise NonceMismatch(account_id, account.nonce, nonce)

    @staticmethod
    def _check_funds(account_id: int, account: Account, token: int, required: int):
        balance = account.get_balance(token)
        if balance < required:
            raise InsufficientBalance(account_id, token, balance, required)

    def _create_account(self, account_id: int, account: Account):
        self.index.bind(account.address, account_id)
        self.tree.set(account_id, account)

    # ==========================================================================
    # PRIORITY OPERATIONS
    # ==========================================================================

    def deposit(self, op: Deposit) -> int:
        """Credit a deposit, creating the account on first sight of its address."""
        account_id = self.index.resolve(op.address)

        if account_id is None:
            account_id = self._allocate(op.address, op.account_id)
            account = Account(op.address)
            account.add_balance(op.token, op.amount)
            self._create_account(account_id, account)
            logger.debug(f"Deposit created account {account_id} with {op.amount} of token {op.token}")
            return account_id

        if op.account_id is not None and op.account_id != account_id:
            raise DuplicateAddress(op.address, account_id, op.account_id)

        account = self.tree.get(account_id).copy()
        account.add_balance(op.token, op.amount)
        self.tree.set(account_id, account)
        logger.debug(f"Deposit credited {op.amount} of token {op.token} to account {account_id}")
        return account_id

    def full_exit(self, op: FullExit) -> int:
        """Sweep every balance of an account. The account itself stays."""
        account_id, account = self._resolve(op.address, op.account_id)

        account = account.copy()
        account.balances = {}
        self.tree.set(account_id, account)
        logger.debug(f"Full exit emptied account {account_id}")
        return account_id

    # ==========================================================================
    # TRANSACTIONS
    # ==========================================================================

    def transfer(self, op: Transfer) -> int:
        """Move funds between two bound accounts. Returns the fee taken."""
        from_id, sender = self._resolve(op.from_address, op.account_id)
        to_id, recipient = self._resolve(op.to_address, op.to_account_id)
        self._check_nonce(from_id, sender, op.nonce)
        self._check_funds(from_id, sender, op.token, op.amount + op.fee)

        sender = sender.copy()
        sender.sub_balance(op.token, op.amount + op.fee)
        sender.nonce += 1

        if to_id == from_id:
            sender.add_balance(op.token, op.amount)
            self.tree.set(from_id, sender)
        else:
            recipient = recipient.copy()
            recipient.add_balance(op.token, op.amount)
            self.tree.set(from_id, sender)
            self.tree.set(to_id, recipient)

        logger.debug(f"Transfer of {op.amount} token {op.token} from {from_id} to {to_id}")
        return op.fee

    def transfer_to_new(self, op: TransferToNew) -> int:
        """Transfer to an address seen for the first time. Returns the fee taken."""
        from_id, sender = self._resolve(op.from_address, op.account_id)
        self._check_nonce(from_id, sender, op.nonce)
        self._check_funds(from_id, sender, op.token, op.amount + op.fee)
        to_id = self._allocate(op.to_address, op.to_account_id)

        sender = sender.copy()
        sender.sub_balance(op.token, op.amount + op.fee)
        sender.nonce += 1
        recipient = Account(op.to_address)
        recipient.add_balance(op.token, op.amount)

        self.tree.set(from_id, sender)
        self._create_account(to_id, recipient)

        logger.debug(f"Transfer of {op.amount} token {op.token} from {from_id} to new account {to_id}")
        return op.fee

    def withdraw(self, op: Withdraw) -> int:
        """Remove funds from the ledger. Returns the fee taken."""
        account_id, account = self._resolve(op.from_address, op.account_id)
        self._check_nonce(account_id, account, op.nonce)
        self._check_funds(account_id, account, op.token, op.amount + op.fee)

        account = account.copy()
        account.sub_balance(op.token, op.amount + op.fee)
        account.nonce += 1
        self.tree.set(account_id, account)

        logger.debug(f"Withdraw of {op.amount} token {op.token} from account {account_id}")
        return op.fee

    def close(self, op: Close) -> int:
        """Delete an empty account, freeing its id. Returns the fee taken (always 0)."""
        account_id, account = self._resolve(op.from_address, op.account_id)
        self._check_nonce(account_id, account, op.nonce)
        if not account.has_zero_balances():
            raise NonZeroBalanceOnClose(account_id, account.balances)

        self.index.unbind(op.from_address)
        self.tree.remove(account_id)

        logger.debug(f"Closed account {account_id}")
        return 0
