import pytest

from conftest import DAY, direct, ether
from mintsale.core.errors import AlreadyClaimed, InsufficientBalance, NothingToRebate, TooEarly
from mintsale.engine.ledger import PurchaseRecord
from mintsale.engine.pricing import Currency
from mintsale.engine.rebate import ExchangeRates, rebate_amount, tier_multiplier

RATES = ExchangeRates(eth_usd=ether(3000), stars_usd=ether("0.05"))


def close_sale(engine, clock):
    clock.now = engine.state.schedule.public_sale_end_time


def stars_balance(engine, address):
    return engine.payment_token.balance_of(address)


@pytest.mark.parametrize(
    "first_day, second_day, settled, expected",
    [
        (0, 2, ether("0.6"), ether(36000)),
        (1, 3, ether("0.4"), ether(31200)),
        (2, 4, ether("0.2"), ether(24000)),
    ],
    ids=["tier0-1.5x", "tier1-1.3x", "tier2-1x"],
)
def test_eth_buyer_rebate(engine, users, clock, first_day, second_day, settled, expected):
    before = stars_balance(engine, users[0])
    clock.advance(first_day * DAY)
    engine.auction_mint(direct(users[0]), 1, pay_in_stars=False, payment=ether(1))
    clock.advance((second_day - first_day) * DAY)
    engine.auction_mint(direct(users[1]), 1, pay_in_stars=False, payment=ether(1))
    assert engine.settled_price(Currency.ETH) == settled

    close_sale(engine, clock)
    receipt = engine.rebate(direct(users[0]))

    assert receipt.amount == expected
    assert receipt.currency == Currency.STARS
    assert stars_balance(engine, users[0]) - before == expected


@pytest.mark.parametrize(
    "first_day, second_day, first_price",
    [
        (0, 2, ether(74862)),
        (1, 3, ether("59889.6")),
        (2, 4, ether("44917.2")),
    ],
)
def test_stars_buyer_pays_settled_price_in_the_end(engine, users, clock, first_day, second_day, first_price):
    before = stars_balance(engine, users[0])
    clock.advance(first_day * DAY)
    engine.auction_mint(direct(users[0]), 1, pay_in_stars=True)
    clock.advance((second_day - first_day) * DAY)
    engine.auction_mint(direct(users[1]), 1, pay_in_stars=True)
    settled = engine.settled_price(Currency.STARS)

    close_sale(engine, clock)
    receipt = engine.rebate(direct(users[0]))

    assert receipt.amount == first_price - settled == ether("29944.8")
    assert before - stars_balance(engine, users[0]) == settled


def test_rebate_uses_first_purchase_quantity(engine, users, clock):
    engine.auction_mint(direct(users[0]), 2, pay_in_stars=False, payment=ether(2))
    clock.advance(2 * DAY)
    engine.auction_mint(direct(users[0]), 5, pay_in_stars=False, payment=ether(5))

    close_sale(engine, clock)
    assert engine.rebate(direct(users[0])).amount == 2 * ether(36000)


def test_stars_purchase_moves_eth_settled_price(engine, users, clock):
    engine.auction_mint(direct(users[0]), 1, pay_in_stars=False, payment=ether(1))
    clock.advance(2 * DAY)
    engine.auction_mint(direct(users[1]), 1, pay_in_stars=True)
    assert engine.settled_price(Currency.ETH) == ether("0.6")

    close_sale(engine, clock)
    assert engine.rebate_preview(users[0]) == ether(36000)


def test_nothing_to_rebate_without_purchase(engine, users, clock):
    close_sale(engine, clock)
    with pytest.raises(NothingToRebate, match="Nothing to rebate."):
        engine.rebate(direct(users[0]))


def test_nothing_to_rebate_when_price_never_dropped(engine, users, clock):
    engine.auction_mint(direct(users[0]), 1, pay_in_stars=False, payment=ether(1))
    clock.advance(7 * DAY)
    assert engine.settled_price(Currency.ETH) == ether(1)

    close_sale(engine, clock)
    with pytest.raises(NothingToRebate):
        engine.rebate(direct(users[0]))


def test_rebate_already_claimed(engine, users, clock):
    engine.auction_mint(direct(users[0]), 1, pay_in_stars=False, payment=ether(1))
    clock.advance(2 * DAY)
    engine.auction_mint(direct(users[1]), 1, pay_in_stars=False, payment=ether(1))
    close_sale(engine, clock)

    engine.rebate(direct(users[0]))
    with pytest.raises(AlreadyClaimed, match="Rebate already claimed"):
        engine.rebate(direct(users[0]))
    assert engine.rebate_claimed(users[0])


def test_rebate_too_early(engine, users, clock):
    engine.auction_mint(direct(users[0]), 1, pay_in_stars=False, payment=ether(1))
    clock.advance(2 * DAY)
    engine.auction_mint(direct(users[1]), 1, pay_in_stars=False, payment=ether(1))
    with pytest.raises(TooEarly):
        engine.rebate(direct(users[0]))


def test_failed_payout_does_not_mark_claimed(engine, users, clock):
    token = engine.payment_token
    treasury = engine.state.treasury
    engine.auction_mint(direct(users[0]), 1, pay_in_stars=False, payment=ether(1))
    clock.advance(2 * DAY)
    engine.auction_mint(direct(users[1]), 1, pay_in_stars=False, payment=ether(1))
    close_sale(engine, clock)

    token.transfer(treasury, users[5], token.balance_of(treasury))
    with pytest.raises(InsufficientBalance):
        engine.rebate(direct(users[0]))
    assert not engine.rebate_claimed(users[0])

    token.mint(treasury, ether(36000))
    assert engine.rebate(direct(users[0])).amount == ether(36000)


def test_rebate_amount_formula():
    record = PurchaseRecord(
        sequence=0, first_tier=5, first_unit_price=ether(1), first_currency=Currency.ETH, first_quantity=3
    )
    settled = {Currency.ETH: ether("0.5"), Currency.STARS: ether(1)}
    # 0.5 ETH * 3 * 3000 / 0.05 at 1x
    assert rebate_amount(record, settled, RATES) == ether(90000)
    assert tier_multiplier(0) == (15, 10)
    assert tier_multiplier(7) == (1, 1)


def test_exchange_rates_must_be_positive():
    with pytest.raises(ValueError):
        ExchangeRates(eth_usd=0, stars_usd=1)
