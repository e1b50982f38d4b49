import pytest

from conftest import DAY, ether
from mintsale.engine.pricing import Currency, PriceEngine, PriceSchedule

ETH = PriceSchedule(start_price=ether(1), end_price=ether("0.2"), step_amount=ether("0.2"), step_interval=DAY)
STARS = PriceSchedule(
    start_price=ether(74862), end_price=ether("14972.4"), step_amount=ether("14972.4"), step_interval=DAY
)


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (0, ether(1)),
        (DAY - 1, ether(1)),
        (DAY, ether("0.8")),
        (2 * DAY, ether("0.6")),
        (3 * DAY, ether("0.4")),
        (4 * DAY, ether("0.2")),
        (30 * DAY, ether("0.2")),
    ],
)
def test_eth_price_steps_down_daily(elapsed, expected):
    assert ETH.price_at(elapsed) == expected


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (0, ether(74862)),
        (DAY, ether("59889.6")),
        (2 * DAY, ether("44917.2")),
        (3 * DAY, ether("29944.8")),
        (4 * DAY, ether("14972.4")),
        (9 * DAY, ether("14972.4")),
    ],
)
def test_stars_price_steps_down_daily(elapsed, expected):
    assert STARS.price_at(elapsed) == expected


def test_num_tiers_and_boundary():
    assert ETH.num_tiers == 5
    assert ETH.last_tier_boundary == 4 * DAY
    assert ETH.tier_at(100 * DAY) == 4


def test_step_must_divide_price_range():
    with pytest.raises(ValueError, match="must divide"):
        PriceSchedule(start_price=100, end_price=30, step_amount=25, step_interval=10)


def test_last_tier_lands_on_end_price():
    schedule = PriceSchedule(start_price=100, end_price=25, step_amount=25, step_interval=10)
    assert schedule.num_tiers == 4
    assert [schedule.price_at(t) for t in (0, 10, 20, 30, 1000)] == [100, 75, 50, 25, 25]


def test_price_is_non_increasing_in_time():
    prices = [STARS.price_at(t) for t in range(0, 6 * DAY, 3600)]
    assert all(a >= b for a, b in zip(prices, prices[1:]))


def test_negative_elapsed_rejected():
    with pytest.raises(ValueError):
        ETH.tier_at(-1)


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(start_price=10, end_price=10, step_amount=1, step_interval=1),
        dict(start_price=10, end_price=1, step_amount=0, step_interval=1),
        dict(start_price=10, end_price=1, step_amount=1, step_interval=0),
    ],
)
def test_invalid_schedule_rejected(kwargs):
    with pytest.raises(ValueError):
        PriceSchedule(**kwargs)


def test_price_engine_quotes_each_currency_independently():
    prices = PriceEngine(eth=ETH, stars=STARS)
    quote = prices.quote(Currency.STARS, 2 * DAY + 5)
    assert quote.tier == 2
    assert quote.unit_price == ether("44917.2")
    assert quote.total(3) == 3 * ether("44917.2")
    assert prices.price(Currency.ETH, 2 * DAY + 5) == ether("0.6")
