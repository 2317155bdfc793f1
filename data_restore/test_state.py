"""
Ledger state tests: the replay scenarios and the properties that must hold
for any operation log.
"""
import pytest
from data_restore.account import Account
from data_restore.errors import (
    CapacityExceeded,
    DuplicateAddress,
    InsufficientBalance,
    LedgerError,
    NonceMismatch,
    NonZeroBalanceOnClose,
    UnknownAccountId,
)
from data_restore.operations import Close, Deposit, FullExit, Transfer, TransferToNew, Withdraw
from data_restore.state import LedgerState
from data_restore.tree import verify_proof

X = b'\x00' * 19 + b'\x0a'
Y = b'\x00' * 19 + b'\x0b'
Z = b'\x00' * 19 + b'\x0c'
OPERATOR = b'\x00' * 19 + b'\xff'


def replay_log():
    """A log touching every operation kind."""
    return [
        Deposit(X, token=0, amount=100),
        Deposit(OPERATOR, token=0, amount=0),
        TransferToNew(X, Y, token=0, amount=30, fee=1, nonce=0),
        Deposit(Y, token=1, amount=12),
        Transfer(Y, X, token=1, amount=2, fee=0, nonce=0),
        Withdraw(X, token=0, amount=9, fee=1, nonce=1),
        FullExit(Y),
        Close(Y, nonce=1),
        TransferToNew(X, Z, token=1, amount=2, fee=0, nonce=2),
    ]


def state_view(state):
    return state.root_hash(), state.get_accounts()


@pytest.fixture
def scenario_a(state):
    state.apply(Deposit(X, token=0, amount=100))
    return state


@pytest.fixture
def scenario_b(scenario_a):
    scenario_a.apply(TransferToNew(X, Y, token=0, amount=30, fee=1, nonce=0))
    return scenario_a


class TestScenarios:
    def test_genesis_deposit(self, scenario_a):
        account_id, account = scenario_a.get_account_by_address(X)

        assert account_id == 0
        assert account.get_balance(0) == 100
        assert account.nonce == 0

    def test_transfer_to_new(self, scenario_b):
        x_id, x_account = scenario_b.get_account_by_address(X)
        y_id, y_account = scenario_b.get_account_by_address(Y)

        assert x_id == 0
        assert x_account.get_balance(0) == 69
        assert x_account.nonce == 1
        assert y_id == 1
        assert y_account.get_balance(0) == 30
        assert y_account.nonce == 0

    def test_overdrawn_withdraw_changes_nothing(self, scenario_b):
        before = state_view(scenario_b)
        fees_before = dict(scenario_b.collected_fees)

        with pytest.raises(InsufficientBalance):
            scenario_b.apply(Withdraw(X, token=0, amount=1000, fee=0, nonce=1))

        assert state_view(scenario_b) == before
        assert dict(scenario_b.collected_fees) == fees_before

    def test_close_with_balance_rejected(self, scenario_b):
        with pytest.raises(NonZeroBalanceOnClose):
            scenario_b.apply(Close(Y, nonce=0))

    def test_future_nonce_rejected(self, scenario_b):
        before = state_view(scenario_b)

        with pytest.raises(NonceMismatch):
            scenario_b.apply(Transfer(Y, X, token=0, amount=1, fee=0, nonce=5))

        assert state_view(scenario_b) == before


class TestProperties:
    def test_determinism(self):
        first = LedgerState.new(depth=8)
        second = LedgerState.new(depth=8)
        for op in replay_log():
            first.apply(op)
        for op in replay_log():
            second.apply(op)

        assert first.root_hash() == second.root_hash()
        assert first.get_accounts() == second.get_accounts()

    def test_conservation_across_transfers(self, state):
        state.apply(Deposit(X, token=0, amount=50))
        state.apply(Deposit(Y, token=0, amount=50))
        state.apply(Deposit(Y, token=1, amount=8))
        totals = state.total_balances()

        state.apply(Transfer(X, Y, token=0, amount=20, fee=3, nonce=0))
        state.apply(TransferToNew(Y, Z, token=1, amount=8, fee=0, nonce=0))
        state.apply(Transfer(Z, Y, token=1, amount=8, fee=0, nonce=0))
        state.apply(Close(Z, nonce=1))

        assert state.total_balances() == totals
        assert state.total_balances(include_fees=False) == {0: 97, 1: 8}

    def test_bijection_holds_throughout(self, state):
        for op in replay_log():
            state.apply(op)
            addresses = [account.address for _, account in state.get_accounts()]
            assert len(addresses) == len(set(addresses))
            for account_id, account in state.get_accounts():
                assert state.get_account_by_address(account.address)[0] == account_id

    def test_nonce_monotonicity(self, state):
        nonces = []
        for op in replay_log():
            state.apply(op)
            found = state.get_account_by_address(X)
            nonces.append(found[1].nonce)

        assert nonces == sorted(nonces)
        assert nonces[-1] == 3  # three transactions sent by X

    def test_key_derived_addresses(self, state, addresses):
        alice, bob, carol = addresses
        state.apply(Deposit(alice, token=0, amount=10))
        state.apply(TransferToNew(alice, bob, token=0, amount=4, fee=0, nonce=0))
        state.apply(TransferToNew(bob, carol, token=0, amount=4, fee=0, nonce=0))

        assert [state.get_account_by_address(a)[0] for a in addresses] == [0, 1, 2]
        assert state.get_account_by_address(carol)[1].get_balance(0) == 4
        assert state.get_account_by_address(bob)[1].balances == {}

    def test_priority_ops_leave_nonce(self, scenario_b):
        scenario_b.apply(Deposit(X, token=0, amount=1))
        scenario_b.apply(FullExit(X))
        assert scenario_b.get_account_by_address(X)[1].nonce == 1

    def test_idempotent_queries(self, scenario_b):
        assert scenario_b.root_hash() == scenario_b.root_hash()
        assert scenario_b.get_accounts() == scenario_b.get_accounts()

    def test_queries_reflect_every_apply(self, scenario_a):
        root = scenario_a.root_hash()
        scenario_a.apply(Deposit(X, token=0, amount=1))
        assert scenario_a.root_hash() != root

    def test_returned_accounts_are_copies(self, scenario_a):
        root = scenario_a.root_hash()
        _, account = scenario_a.get_account_by_address(X)
        account.add_balance(0, 1000)

        assert scenario_a.get_account_by_address(X)[1].get_balance(0) == 100
        assert scenario_a.root_hash() == root


class TestFees:
    def test_fees_collected_until_block_end(self, scenario_b):
        assert dict(scenario_b.collected_fees) == {0: 1}
        assert scenario_b.block_number == 0

        scenario_b.end_block(fee_account_id=1)

        assert scenario_b.get_account(1).get_balance(0) == 31
        assert dict(scenario_b.collected_fees) == {}
        assert scenario_b.block_number == 1

    def test_apply_never_moves_block(self, scenario_b):
        assert scenario_b.block_number == 0

    def test_missing_fee_account(self, scenario_b):
        with pytest.raises(UnknownAccountId):
            scenario_b.end_block(fee_account_id=7)
        assert scenario_b.block_number == 0

    def test_fees_without_fee_account(self, scenario_b):
        with pytest.raises(LedgerError):
            scenario_b.end_block()

    def test_block_without_fees_needs_no_fee_account(self, scenario_a):
        scenario_a.end_block()
        assert scenario_a.block_number == 1


class TestLoad:
    def test_load_resumes_at_next_block(self):
        accounts = {
            0: Account(X, nonce=4, balances={0: 10}),
            3: Account(Y, balances={1: 2}),
        }
        state = LedgerState.load(accounts, current_block=41, depth=8)

        assert state.block_number == 42
        assert state.get_account_by_address(Y) == (3, Account(Y, balances={1: 2}))
        assert [account_id for account_id, _ in state.get_accounts()] == [0, 3]

    def test_load_matches_replay(self):
        replayed = LedgerState.new(depth=8)
        for op in replay_log():
            replayed.apply(op)

        loaded = LedgerState.load(dict(replayed.get_accounts()), current_block=0, depth=8)

        assert loaded.root_hash() == replayed.root_hash()

    def test_load_fills_gaps_first(self):
        state = LedgerState.load({2: Account(X)}, current_block=0, depth=8)
        state.apply(Deposit(Y, token=0, amount=1))

        assert state.get_account_by_address(Y)[0] == 0

    def test_loaded_accounts_are_not_aliased(self):
        account = Account(X, balances={0: 10})
        state = LedgerState.load({0: account}, current_block=0, depth=8)
        account.add_balance(0, 5)

        assert state.get_account(0).get_balance(0) == 10

    def test_duplicate_address_in_snapshot(self):
        with pytest.raises(DuplicateAddress):
            LedgerState.load({0: Account(X), 1: Account(X)}, current_block=0, depth=8)

    def test_id_outside_tree(self):
        with pytest.raises(CapacityExceeded):
            LedgerState.load({256: Account(X)}, current_block=0, depth=8)


class TestProofs:
    def test_account_proof_against_root(self, scenario_b):
        account_id, account = scenario_b.get_account_by_address(Y)
        proof = scenario_b.get_proof(account_id)

        assert len(proof) == scenario_b.depth
        assert verify_proof(scenario_b.root_hash(), account_id, account, proof)
