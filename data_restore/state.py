"""
The replayed ledger: account tree, address index and block number.
"""
import logging
from collections import defaultdict
from data_restore.account import Account
from data_restore.address_index import AddressIndex
from data_restore.dispatcher import OperationDispatcher
from data_restore.errors import LedgerError, UnknownAccountId
from data_restore.executor import OperationExecutor
from data_restore.operations import Operation
from data_restore.tree import AccountStateTree, DEFAULT_TREE_DEPTH

logger = logging.getLogger(__name__)


class LedgerState:
    """
    Account state rebuilt from the ordered operation log.

    Build one with `LedgerState.new()` at genesis or `LedgerState.load()` from
    a snapshot. The only mutating calls are `apply` (one operation) and
    `end_block` (the block boundary). Queries return copies, so nothing
    outside this object can change the tree without rehashing it.
    """

    def __init__(self, tree: AccountStateTree, index: AddressIndex, block_number: int):
        self._tree = tree
        self._index = index
        self.block_number = block_number
        # Fees taken by transactions in the current block, {token: amount}
        self.collected_fees: dict[int, int] = defaultdict(int)
        self._dispatcher = OperationDispatcher(OperationExecutor(tree, index))

    @classmethod
    def new(cls, depth: int = DEFAULT_TREE_DEPTH) -> 'LedgerState':
        """Empty genesis state."""
        return cls(AccountStateTree(depth), AddressIndex(), 0)

    @classmethod
    def load(cls, accounts: dict[int, Account], current_block: int,
             depth: int = DEFAULT_TREE_DEPTH) -> 'LedgerState':
        """
        Rebuild state from a finalized snapshot.

        Args:
            accounts: {account_id: Account} as of the end of `current_block`
            current_block: Last block included in the snapshot
            depth: Tree depth

        Replay resumes at `current_block + 1`.
        """
        tree = AccountStateTree(depth)
        index = AddressIndex()
        for account_id, account in sorted(accounts.items()):
            tree.get(account_id)  # range check before binding
            index.bind(account.address, account_id)
            tree.set(account_id, account.copy())

        logger.info(f"Loaded {len(tree)} accounts at block {current_block}")
        return cls(tree, index, current_block + 1)

    # ==========================================================================
    # MUTATION
    # ==========================================================================

    def apply(self, op: Operation):
        """Apply one operation. Raises a LedgerError and changes nothing on failure."""
        fee = self._dispatcher.dispatch(op)
        if fee is not None:
            token, amount = fee
            if amount:
                self.collected_fees[token] += amount

    def end_block(self, fee_account_id: int | None = None):
        """
        Close the current block: pay collected fees to the block's fee
        account and move on to the next block number.
        """
        fees = {token: amount for token, amount in self.collected_fees.items() if amount}
        if fees:
            if fee_account_id is None:
                raise LedgerError(f"Block {self.block_number} collected fees {fees} but has no fee account")
            fee_account = self._tree.get(fee_account_id)
            if fee_account is None:
                raise UnknownAccountId(fee_account_id)

            fee_account = fee_account.copy()
            for token, amount in fees.items():
                fee_account.add_balance(token, amount)
            self._tree.set(fee_account_id, fee_account)
            logger.debug(f"Credited fees {fees} to account {fee_account_id}")

        self.collected_fees.clear()
        self.block_number += 1

    # ==========================================================================
    # QUERIES
    # ==========================================================================

    def root_hash(self) -> bytes:
        return self._tree.root_hash()

    def get_accounts(self) -> list[tuple[int, Account]]:
        """All live (id, account) pairs, ordered by id."""
        return [(account_id, account.copy()) for account_id, account in self._tree.items()]

    def get_account(self, account_id: int) -> Account | None:
        account = self._tree.get(account_id)
        return account.copy() if account is not None else None

    def get_account_by_address(self, address: bytes) -> tuple[int, Account] | None:
        account_id = self._index.resolve(address)
        if account_id is None:
            return None
        return account_id, self._tree.get(account_id).copy()

    def get_proof(self, account_id: int) -> list[bytes]:
        return self._tree.get_proof(account_id)

    def total_balances(self, include_fees: bool = True) -> dict[int, int]:
        """Sum of balances per token over all accounts."""
        totals = defaultdict(int)
        for _, account in self._tree.items():
            for token, amount in account.balances.items():
                totals[token] += amount
        if include_fees:
            for token, amount in self.collected_fees.items():
                totals[token] += amount
        return {token: amount for token, amount in totals.items() if amount}

    @property
    def account_count(self) -> int:
        return len(self._tree)

    @property
    def depth(self) -> int:
        return self._tree.depth

    def __repr__(self) -> str:
        return (
            f"LedgerState("
            f"block={self.block_number}, "
            f"accounts={self.account_count}, "
            f"root=0x{self.root_hash().hex()})"
        )
