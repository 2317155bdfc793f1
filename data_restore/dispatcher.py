"""
Routes operations to the executor.
"""
from data_restore.errors import InvalidOperation
from data_restore.executor import OperationExecutor
from data_restore.operations import (
    CLOSE,
    DEPOSIT,
    FULL_EXIT,
    TRANSFER,
    TRANSFER_TO_NEW,
    WITHDRAW,
    Operation,
)


class OperationDispatcher:
    """
    Splits operations into priority operations and transactions.

    Only transactions consume a nonce and pay a fee; `dispatch` returns the
    (token, fee) pair of a transaction and None for a priority operation.
    """

    def __init__(self, executor: OperationExecutor):
        self.executor = executor

    def dispatch(self, op: Operation) -> tuple[int, int] | None:
        if op.is_priority:
            self.execute_priority_op(op)
            return None
        return self.execute_tx(op)

    def execute_priority_op(self, op: Operation):
        if op.op_type == DEPOSIT:
            self.executor.deposit(op)
        elif op.op_type == FULL_EXIT:
            self.executor.full_exit(op)
        else:
            raise InvalidOperation(f"Not a priority operation: {op.op_type}")

    def execute_tx(self, op: Operation) -> tuple[int, int]:
        if op.op_type == TRANSFER:
            fee = self.executor.transfer(op)
        elif op.op_type == TRANSFER_TO_NEW:
            fee = self.executor.transfer_to_new(op)
        elif op.op_type == WITHDRAW:
            fee = self.executor.withdraw(op)
        elif op.op_type == CLOSE:
            return 0, self.executor.close(op)
        else:
            raise InvalidOperation(f"Unknown transaction type: {op.op_type}")
        return op.token, fee
