"""
Sale phase clock.

Phases are derived from the configured time windows. Windows are half-open
``[start, end)``. Windows may overlap in configuration; each purchase path
only checks its own window. The public window is additionally gated by the
``has_public_sale`` flag.

A start time of 0 means the window is not scheduled yet. Until the auction
start is scheduled the sale is ``BEFORE``: nothing is open, nothing is
closed and the owner can still configure it.
"""

from dataclasses import dataclass, fields
from enum import Enum

from mintsale.core.errors import SaleEnded, SaleNotStarted

UNSCHEDULED = 0


class SalePhase(str, Enum):
    BEFORE = "before"
    AUCTION = "auction"
    ALLOWLIST = "allowlist"
    PUBLIC = "public"
    IDLE = "idle"        # between windows, sales not yet closed
    CLOSED = "closed"


@dataclass(slots=True)
class SaleSchedule:
    auction_sale_start_time: int = UNSCHEDULED
    auction_sale_end_time: int = UNSCHEDULED
    whitelist_sale_start_time: int = UNSCHEDULED
    whitelist_sale_end_time: int = UNSCHEDULED
    public_sale_start_time: int = UNSCHEDULED
    public_sale_end_time: int = UNSCHEDULED
    has_public_sale: bool = False

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class SalePhaseClock:
    """Answers phase questions for a schedule at a given timestamp."""

    def __init__(self, schedule: SaleSchedule):
        self.schedule = schedule

    def _window(self, phase: SalePhase) -> tuple[int, int]:
        s = self.schedule
        if phase == SalePhase.AUCTION:
            return s.auction_sale_start_time, s.auction_sale_end_time
        if phase == SalePhase.ALLOWLIST:
            return s.whitelist_sale_start_time, s.whitelist_sale_end_time
        if phase == SalePhase.PUBLIC:
            return s.public_sale_start_time, s.public_sale_end_time
        raise ValueError(f"{phase.value} has no sale window")

    @property
    def is_scheduled(self) -> bool:
        return self.schedule.auction_sale_start_time != UNSCHEDULED

    def is_open(self, phase: SalePhase, now: int) -> bool:
        start, end = self._window(phase)
        if phase == SalePhase.PUBLIC and not self.schedule.has_public_sale:
            return False
        if start == UNSCHEDULED:
            return False
        return start <= now < end

    def is_closed(self, now: int) -> bool:
        if not self.is_scheduled:
            return False
        s = self.schedule
        return now >= s.whitelist_sale_end_time and now >= s.public_sale_end_time

    def has_auction_started(self, now: int) -> bool:
        return self.is_scheduled and now >= self.schedule.auction_sale_start_time

    def require_open(self, phase: SalePhase, now: int) -> None:
        """Raise SaleNotStarted / SaleEnded unless ``phase``'s window is open."""
        start, end = self._window(phase)
        if phase == SalePhase.PUBLIC and not self.schedule.has_public_sale:
            raise SaleNotStarted("public sale has not started yet")
        if start == UNSCHEDULED or now < start:
            raise SaleNotStarted(f"{phase.value} sale has not started yet")
        if now >= end:
            raise SaleEnded(f"{phase.value} sale has already ended")

    def current_phase(self, now: int) -> SalePhase:
        if self.is_closed(now):
            return SalePhase.CLOSED
        for phase in (SalePhase.AUCTION, SalePhase.ALLOWLIST, SalePhase.PUBLIC):
            if self.is_open(phase, now):
                return phase
        if not self.has_auction_started(now):
            return SalePhase.BEFORE
        return SalePhase.IDLE
