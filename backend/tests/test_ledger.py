import pytest

from mintsale.core.errors import SupplyExceeded
from mintsale.engine.ledger import AllocationLedger, PoolName
from mintsale.engine.pricing import Currency


@pytest.fixture
def ledger():
    return AllocationLedger.create(total_supply=1923, early_budget=0, dev_budget=50, auction_budget=1585)


def test_public_budget_is_what_is_left(ledger):
    assert ledger.pools[PoolName.PUBLIC].budget == 288
    assert ledger.pools[PoolName.REMAINING].budget == 0
    assert ledger.unsold() == 1923


def test_budgets_must_fit():
    with pytest.raises(ValueError):
        AllocationLedger.create(total_supply=10, early_budget=5, dev_budget=5, auction_budget=5)


def test_pool_budget_enforced(ledger):
    ledger.record_mint(PoolName.DEV, 50)
    with pytest.raises(SupplyExceeded):
        ledger.record_mint(PoolName.DEV, 1)
    assert ledger.pools[PoolName.DEV].minted == 50


def test_first_auction_purchase_fixes_queue_entry(ledger):
    ledger.record_purchase("0xA", 2, is_auction=True, tier=0, unit_price=10, currency=Currency.ETH)
    ledger.record_purchase("0xB", 1, is_auction=True, tier=1, unit_price=8, currency=Currency.STARS)
    record = ledger.record_purchase("0xA", 5, is_auction=True, tier=3, unit_price=4, currency=Currency.STARS)

    assert ledger.queue == ["0xA", "0xB"]
    assert record.sequence == 0
    assert (record.first_tier, record.first_unit_price, record.first_currency) == (0, 10, Currency.ETH)
    assert record.first_quantity == 2
    assert record.auction_quantity == 7


def test_non_auction_purchase_does_not_queue(ledger):
    record = ledger.record_purchase("0xC", 3, is_auction=False, tier=0, unit_price=10, currency=Currency.ETH)
    assert not record.in_queue
    assert record.total_quantity == 3
    assert ledger.queue == []
    assert ledger.queue_position("0xC") is None


def test_freeze_remaining_is_idempotent(ledger):
    ledger.record_mint(PoolName.AUCTION, 1585)
    ledger.record_mint(PoolName.DEV, 50)
    assert ledger.freeze_remaining() == 288
    ledger.record_mint(PoolName.REMAINING, 100)
    assert ledger.freeze_remaining() == 288
    assert ledger.reserved() == 188


def test_reserved_supply_blocks_other_pools(ledger):
    ledger.record_mint(PoolName.AUCTION, 1585)
    ledger.freeze_remaining()
    # the dev pool still has budget, but every unsold item is now promised
    with pytest.raises(SupplyExceeded):
        ledger.record_mint(PoolName.DEV, 1)
    assert ledger.total_minted == 1585
