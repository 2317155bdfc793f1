"""
Reading account snapshots to resume a restore from a finalized block.

Snapshot layout:
    {
        "block_number": 1200,
        "accounts": {
            "0": {"address": "0x...", "nonce": 3, "balances": {"0": 100}},
            ...
        }
    }
"""
import json
import logging
from data_restore.account import Account
from data_restore.state import LedgerState

logger = logging.getLogger(__name__)


def snapshot_from_dict(data: dict) -> tuple[dict[int, Account], int]:
    """Returns ({account_id: Account}, block_number) ready for LedgerState.load."""
    if 'block_number' not in data:
        raise ValueError("Snapshot is missing 'block_number'")

    block_number = int(data['block_number'])
    if block_number < 0:
        raise ValueError("Snapshot block number cannot be negative")

    accounts = {}
    for account_id, account_data in data.get('accounts', {}).items():
        accounts[int(account_id)] = Account.from_dict(account_data)
    return accounts, block_number


def load_snapshot(path: str) -> tuple[dict[int, Account], int]:
    """Load a JSON snapshot file."""
    with open(path, 'r') as f:
        data = json.load(f)
    accounts, block_number = snapshot_from_dict(data)
    logger.info(f"Read snapshot of {len(accounts)} accounts at block {block_number} from {path}")
    return accounts, block_number


def snapshot_to_dict(state: LedgerState) -> dict:
    """
    Describe a state in snapshot layout. The snapshot block is the last
    finished block, one behind the block the state is replaying.
    """
    if state.block_number == 0:
        raise ValueError("State has not finished any block yet")
    return {
        'block_number': state.block_number - 1,
        'accounts': {str(account_id): account.to_dict() for account_id, account in state.get_accounts()},
    }
