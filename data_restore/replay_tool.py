"""
Account State Restore Tool

Replays decoded rollup blocks from a JSON file, optionally on top of a
snapshot, and prints the resulting block number, account count and root hash
so they can be compared with the root committed on chain.

Blocks file layout:
    {"blocks": [{"block_number": 0, "fee_account_id": 0,
                 "root_hash": "0x...", "operations": [{"type": "DEPOSIT", ...}]}]}
"""
import argparse
import json
import logging
import sys
from data_restore.config import Config
from data_restore.errors import LedgerError, RestoreError
from data_restore.monitoring import ReplayMonitor
from data_restore.restore import RollupBlock, StateRestorer
from data_restore.snapshot import load_snapshot
from data_restore.state import LedgerState
from data_restore.utils.encoding import to_hex

logger = logging.getLogger(__name__)


def load_blocks(path: str) -> list[RollupBlock]:
    """Read the blocks file. A bare list of blocks is accepted as well."""
    with open(path, 'r') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get('blocks', [])
    if not isinstance(data, list):
        raise ValueError("Blocks file must hold a list of blocks")
    return [RollupBlock.from_dict(block) for block in data]


def build_state(config: Config, snapshot_path: str = None) -> LedgerState:
    if snapshot_path:
        accounts, block_number = load_snapshot(snapshot_path)
        return LedgerState.load(accounts, block_number, depth=config.tree.depth)
    return LedgerState.new(depth=config.tree.depth)


def run(operations_path: str, snapshot_path: str = None, config: Config = None) -> LedgerState:
    """Restore state from files. Raises RestoreError on the first failure."""
    config = config or Config.default()

    monitor = None
    if config.monitoring.enabled:
        monitor = ReplayMonitor(host=config.monitoring.host, port=config.monitoring.port)
        monitor.start_server()

    try:
        try:
            state = build_state(config, snapshot_path)
            blocks = load_blocks(operations_path)
        except (LedgerError, ValueError, KeyError) as e:
            raise RestoreError(f"Invalid input: {e}") from e

        restorer = StateRestorer(state, config, monitor=monitor)
        return restorer.restore(blocks)
    finally:
        if monitor:
            monitor.stop_server()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Account State Restore Tool")
    parser.add_argument("--operations", type=str, required=True, help="Path to the decoded blocks JSON file")
    parser.add_argument("--snapshot", type=str, default=None, help="Path to a snapshot JSON file to resume from")
    parser.add_argument("--config", type=str, default=None, help="Path to a config JSON file")
    parser.add_argument("--metrics", action="store_true", help="Expose Prometheus metrics while replaying")
    parser.add_argument("--verbose", action="store_true", help="Log every applied operation")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    config = Config.from_file(args.config) if args.config else Config.default()
    if args.metrics:
        config.monitoring.enabled = True

    try:
        state = run(args.operations, args.snapshot, config)
    except RestoreError as e:
        print(f"Restore aborted: {e}", file=sys.stderr)
        return 1

    print(f"Next block: {state.block_number}")
    print(f"Accounts: {state.account_count}")
    print(f"Root hash: {to_hex(state.root_hash())}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
