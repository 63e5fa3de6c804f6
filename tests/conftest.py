import pytest

from coinslot.acceptor import CoinAcceptor
from coinslot.hardware import MockCoinSlot


class ManualScheduler:
    """Fake clock + timer queue; callbacks run only when time is advanced."""

    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._pending = []

    def clock(self) -> float:
        return self.now

    def schedule(self, delay, callback, *args):
        self._seq += 1
        self._pending.append((self.now + delay, self._seq, callback, args))

    @property
    def pending(self) -> int:
        return len(self._pending)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [item for item in self._pending if item[0] <= target]
            if not due:
                break
            item = min(due)
            self._pending.remove(item)
            self.now = item[0]
            item[2](*item[3])
        self.now = target


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def driver():
    return MockCoinSlot()


@pytest.fixture
def acceptor(driver, scheduler):
    return CoinAcceptor(
        driver,
        debounce_window=0.5,
        clock=scheduler.clock,
        schedule=scheduler.schedule,
        sleep=scheduler.advance,
    )
