import pytest
from mesa import Model

from xy_pool.agents.blockchain import LedgerAgent
from xy_pool.agents.ledger import TokenAssetLedger, TokenShareLedger
from xy_pool.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InsufficientPoolBalance,
    InsufficientShareBalance,
    InvalidAmount,
)


@pytest.fixture
def ledger():
    return LedgerAgent(model=Model(), block_time=2.0)


def test_mint_burn_and_supply(ledger):
    ledger.create_account("Alice", {"SIM": 500, "OTHER": 0})
    assert ledger.get_token_balance("SIM", "Alice") == 500
    assert ledger.total_supply("SIM") == 500
    assert ledger.total_supply("OTHER") == 0

    ledger.burn("SIM", "Alice", 200)
    assert ledger.get_token_balance("SIM", "Alice") == 300
    assert ledger.total_supply("SIM") == 300

    with pytest.raises(InsufficientBalance):
        ledger.burn("SIM", "Alice", 301)
    assert ledger.total_supply("SIM") == 300


def test_transfer_token(ledger):
    ledger.create_account("Alice", {"SIM": 500})
    ledger.transfer_token("SIM", "Alice", "Bob", 50)
    assert ledger.get_token_balance("SIM", "Alice") == 450
    assert ledger.get_token_balance("SIM", "Bob") == 50

    with pytest.raises(InsufficientBalance):
        ledger.transfer_token("SIM", "Bob", "Alice", 51)
    with pytest.raises(InvalidAmount):
        ledger.transfer_token("SIM", "Alice", "Bob", -1)


def test_transfer_from_consumes_allowance(ledger):
    ledger.create_account("Alice", {"SIM": 100})
    with pytest.raises(InsufficientAllowance):
        ledger.transfer_from("SIM", "Pool", "Alice", "Pool", 10)

    ledger.approve("SIM", "Alice", "Pool", 30)
    ledger.transfer_from("SIM", "Pool", "Alice", "Pool", 20)
    assert ledger.allowance("SIM", "Alice", "Pool") == 10
    assert ledger.get_token_balance("SIM", "Pool") == 20

    with pytest.raises(InsufficientAllowance):
        ledger.transfer_from("SIM", "Pool", "Alice", "Pool", 11)

    ledger.approve("SIM", "Alice", "Pool", 1000)
    with pytest.raises(InsufficientBalance):
        ledger.transfer_from("SIM", "Pool", "Alice", "Pool", 81)
    assert ledger.allowance("SIM", "Alice", "Pool") == 1000


def test_events_are_logged_per_block(ledger):
    ledger.create_account("Alice", {"SIM": 10})
    ledger.step()
    ledger.step()
    ledger.transfer_token("SIM", "Alice", "Bob", 4)

    assert ledger.current_block == 2
    assert ledger.timestamp == pytest.approx(4.0)
    assert [name for name, _ in ledger.get_events(block=0)] == ["Mint"]
    assert ledger.get_events(block=2) == [
        ("Transfer", {"token": "SIM", "from": "Alice", "to": "Bob", "amount": 4})
    ]
    assert len(ledger.get_events()) == 2
    assert ledger.get_events(block=1) == []


def test_snapshot_and_restore(ledger):
    ledger.create_account("Alice", {"SIM": 100})
    snap = ledger.snapshot_state()

    ledger.approve("SIM", "Alice", "Pool", 50)
    ledger.transfer_from("SIM", "Pool", "Alice", "Pool", 50)
    ledger.mint("LP", "Alice", 7)

    ledger.restore_state(snap)
    assert ledger.get_token_balance("SIM", "Alice") == 100
    assert ledger.get_token_balance("SIM", "Pool") == 0
    assert ledger.allowance("SIM", "Alice", "Pool") == 0
    assert ledger.total_supply("LP") == 0
    assert len(ledger.get_events()) == 1

    # the snapshot itself must survive a restore unchanged
    ledger.mint("SIM", "Alice", 1)
    ledger.restore_state(snap)
    assert ledger.get_token_balance("SIM", "Alice") == 100


def test_asset_adapter_moves_tokens_through_pool_address(ledger):
    asset = TokenAssetLedger(ledger, "SIM", "Pool")
    ledger.create_account("Alice", {"SIM": 100})
    ledger.approve("SIM", "Alice", "Pool", 60)

    asset.transfer_in("Alice", 60)
    assert asset.balance() == 60
    asset.transfer_out("Bob", 25)
    assert ledger.get_token_balance("SIM", "Bob") == 25

    with pytest.raises(InsufficientPoolBalance):
        asset.transfer_out("Bob", 36)
    with pytest.raises(InsufficientAllowance):
        asset.transfer_in("Alice", 1)


def test_share_adapter_translates_burn_failures(ledger):
    shares = TokenShareLedger(ledger, "LP")
    shares.issue("Alice", 10)
    assert shares.total_issued() == 10
    assert shares.balance_of("Alice") == 10

    with pytest.raises(InsufficientShareBalance):
        shares.redeem("Alice", 11)
    shares.redeem("Alice", 10)
    assert shares.total_issued() == 0

    snap = shares.snapshot()
    shares.issue("Bob", 5)
    shares.restore(snap)
    assert shares.total_issued() == 0
