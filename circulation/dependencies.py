from functools import lru_cache
from circulation.services.circulation import CirculationService
from circulation.services.policy import CirculationPolicy
from circulation.services.sweeper import OverdueSweeper
from circulation.utils.timezone import SystemClock


@lru_cache
def get_policy() -> CirculationPolicy:
    return CirculationPolicy.from_settings()


@lru_cache
def get_clock() -> SystemClock:
    return SystemClock()


@lru_cache
def get_circulation_service() -> CirculationService:
    return CirculationService(policy=get_policy(), clock=get_clock())


@lru_cache
def get_sweeper() -> OverdueSweeper:
    return OverdueSweeper(policy=get_policy(), clock=get_clock())
