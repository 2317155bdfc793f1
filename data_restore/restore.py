"""
Block-by-block restore driver.

Feeds already-decoded rollup blocks into a LedgerState in chain order and
checks the replayed root against the root each block committed on chain.
The first operation that cannot be applied aborts the whole run: a ledger
that skipped an operation can never match the chain again.
"""
import logging
import time
from typing import Iterable, Optional
from data_restore.config import Config
from data_restore.crypto import HASH_LENGTH
from data_restore.errors import LedgerError, RestoreError, RootMismatch
from data_restore.monitoring import ReplayMonitor
from data_restore.operations import Operation
from data_restore.state import LedgerState
from data_restore.utils.encoding import to_hex, from_hex

logger = logging.getLogger(__name__)


class RollupBlock:
    """The operations of one committed block plus its block metadata."""

    def __init__(self,
                 block_number: int,
                 operations: list[Operation],
                 fee_account_id: Optional[int] = None,
                 root_hash: Optional[bytes] = None):
        self.block_number = block_number
        self.operations = operations
        self.fee_account_id = fee_account_id
        self.root_hash = root_hash

    @classmethod
    def from_dict(cls, data: dict):
        """
        Creates a RollupBlock from a dictionary.

        Raises:
            ValueError: A block field has the wrong type or shape.
            InvalidOperation: An operation entry cannot be decoded.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Block entry must be an object, got {type(data).__name__}")

        try:
            block_number = int(data["block_number"])
            fee_account_id = data.get("fee_account_id")
            if fee_account_id is not None:
                fee_account_id = int(fee_account_id)
            root_hash = from_hex(data["root_hash"]) if data.get("root_hash") else None
        except (TypeError, AttributeError) as e:
            raise ValueError(f"Invalid block field: {e}") from e

        if root_hash is not None and len(root_hash) != HASH_LENGTH:
            raise ValueError(f"Root hash must be {HASH_LENGTH} bytes, got {len(root_hash)}")

        operations = data.get("operations", [])
        if not isinstance(operations, list):
            raise ValueError(f"Block {block_number}: operations must be a list")

        return cls(
            block_number=block_number,
            operations=[Operation.from_dict(op) for op in operations],
            fee_account_id=fee_account_id,
            root_hash=root_hash,
        )

    def to_dict(self):
        return {
            "block_number": self.block_number,
            "operations": [op.to_dict() for op in self.operations],
            "fee_account_id": self.fee_account_id,
            "root_hash": to_hex(self.root_hash) if self.root_hash else None,
        }


class StateRestorer:
    def __init__(self, state: LedgerState, config: Config = None,
                 monitor: Optional[ReplayMonitor] = None):
        self.state = state
        self.config = config or Config.default()
        self.monitor = monitor
        self.blocks_applied = 0
        self.ops_applied = 0

    def apply_block(self, block: RollupBlock):
        """
        Replay one block and close it.

        Raises:
            RestoreError: The block is out of order or an operation failed.
            RootMismatch: The replayed root differs from the committed one.
        """
        if block.block_number != self.state.block_number:
            raise RestoreError(
                f"Expected block {self.state.block_number}, got block {block.block_number}",
                block_number=block.block_number,
            )

        start_time = time.time()

        for op_index, op in enumerate(block.operations):
            try:
                self.state.apply(op)
            except LedgerError as e:
                logger.error(
                    f"Block {block.block_number} operation {op_index} "
                    f"({op.op_type} {op.id.hex()[:16]}) failed: {e}"
                )
                if self.monitor:
                    self.monitor.record_op(op.op_type, "failed")
                raise RestoreError(
                    f"Block {block.block_number} operation {op_index} ({op.op_type}) failed: {e}",
                    block_number=block.block_number,
                    op_index=op_index,
                    operation=op,
                ) from e

            self.ops_applied += 1
            if self.monitor:
                self.monitor.record_op(op.op_type, "applied")

        try:
            self.state.end_block(block.fee_account_id)
        except LedgerError as e:
            logger.error(f"Block {block.block_number} could not be closed: {e}")
            raise RestoreError(
                f"Block {block.block_number} could not be closed: {e}",
                block_number=block.block_number,
            ) from e

        self._verify_root(block)

        self.blocks_applied += 1
        if self.monitor:
            self.monitor.record_block(time.time() - start_time)
            self.monitor.update(self.state)

        interval = self.config.replay.log_interval
        if interval and self.blocks_applied % interval == 0:
            logger.info(
                f"Restored up to block {block.block_number}: "
                f"{self.state.account_count} accounts, {self.ops_applied} operations"
            )

    def _verify_root(self, block: RollupBlock):
        if block.root_hash is None or not self.config.replay.verify_roots:
            return

        computed = self.state.root_hash()
        if computed != block.root_hash:
            logger.warning(
                f"Root mismatch at block {block.block_number}: "
                f"chain {to_hex(block.root_hash)}, replay {to_hex(computed)}"
            )
            if self.monitor:
                self.monitor.record_root_mismatch()
            raise RootMismatch(block.block_number, block.root_hash, computed)

    def restore(self, blocks: Iterable[RollupBlock]) -> LedgerState:
        """Replay blocks in order, stopping at the first failure."""
        start_time = time.time()
        for block in blocks:
            self.apply_block(block)

        logger.info(
            f"Restore complete, next block {self.state.block_number}: "
            f"{self.blocks_applied} blocks, {self.ops_applied} operations, "
            f"root {to_hex(self.state.root_hash())} "
            f"({time.time() - start_time:.2f}s)"
        )
        return self.state
