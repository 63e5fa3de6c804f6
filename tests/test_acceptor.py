import logging
import threading
import time

import pytest

from coinslot.acceptor import CoinAcceptor, RunningTotal
from coinslot.hardware import MockCoinSlot


def test_starts_inactive_with_empty_total(acceptor):
    assert acceptor.status() == {"total_value": 0, "active": False, "pulse_count": 0}


def test_pulses_while_inactive_are_dropped(acceptor, driver, scheduler):
    for _ in range(5):
        driver.simulate_pulse()

    assert acceptor.pulse_count == 0
    assert scheduler.pending == 0
    scheduler.advance(1.0)
    assert acceptor.total == 0


@pytest.mark.parametrize("pulses", [1, 5, 10, 20])
def test_known_coin_is_credited_after_quiet_window(acceptor, scheduler, pulses):
    acceptor.activate()
    acceptor.inject_pulses(pulses)

    assert acceptor.pulse_count == pulses
    assert acceptor.total == 0

    scheduler.advance(0.5)

    assert acceptor.total == pulses
    assert acceptor.pulse_count == 0


@pytest.mark.parametrize("pulses", [2, 3, 7, 15])
def test_unknown_pulse_count_is_discarded(acceptor, scheduler, caplog, pulses):
    acceptor.activate()
    with caplog.at_level(logging.WARNING, logger="coinslot.acceptor"):
        acceptor.inject_pulses(pulses)
        scheduler.advance(0.5)

    assert acceptor.total == 0
    assert acceptor.pulse_count == 0
    assert f"{pulses} pulses" in caplog.text


def test_burst_is_credited_once_despite_many_checks(acceptor, scheduler):
    acceptor.activate()
    acceptor.inject_pulses(10)
    assert scheduler.pending == 10

    scheduler.advance(2.0)

    assert scheduler.pending == 0
    assert acceptor.total == 10


def test_pulse_inside_window_extends_the_burst(acceptor, driver, scheduler):
    acceptor.activate()
    acceptor.inject_pulses(3)
    scheduler.advance(0.4)
    driver.simulate_pulse()
    driver.simulate_pulse()

    # Checks for the first three pulses fire here and must not close the burst
    scheduler.advance(0.4)
    assert acceptor.total == 0
    assert acceptor.pulse_count == 5

    scheduler.advance(0.2)
    assert acceptor.total == 5
    assert acceptor.pulse_count == 0


def test_last_pulse_time_is_stamped(acceptor, scheduler):
    acceptor.activate()
    scheduler.advance(3.0)
    acceptor.inject_pulses(1)
    assert acceptor.last_pulse_time == 3.0


def test_checks_fired_out_of_order_never_close_early():
    checks = []
    now = [0.0]
    acceptor = CoinAcceptor(
        MockCoinSlot(),
        clock=lambda: now[0],
        schedule=lambda delay, callback, *args: checks.append((callback, args)),
        sleep=lambda seconds: None,
    )
    acceptor.activate()
    acceptor.inject_pulses(5)
    assert len(checks) == 5

    # A stale check firing alone leaves the burst open
    callback, args = checks[0]
    callback(*args)
    assert acceptor.pulse_count == 5
    assert acceptor.total == 0

    # The newest check closes it; the rest are no-ops in any order
    for callback, args in reversed(checks):
        callback(*args)
    assert acceptor.total == 5
    assert acceptor.pulse_count == 0


def test_insert_then_disable_with_fake_time(acceptor, scheduler):
    acceptor.activate()
    acceptor.inject_pulses(1)
    scheduler.advance(0.6)
    assert acceptor.total == 1

    acceptor.inject_pulses(5, interval=0.04)
    scheduler.advance(0.6)
    assert acceptor.total == 6

    acceptor.deactivate()
    acceptor.inject_pulses(10)
    scheduler.advance(0.6)
    assert acceptor.total == 6


def test_deactivate_leaves_burst_to_pending_check(acceptor, driver, scheduler):
    acceptor.activate()
    acceptor.inject_pulses(5)
    acceptor.deactivate()
    driver.simulate_pulse()

    assert acceptor.pulse_count == 5
    scheduler.advance(0.5)
    assert acceptor.total == 5


def test_activate_drives_output(acceptor, driver):
    assert acceptor.activate() is True
    assert driver.level is True
    assert acceptor.active is True

    assert acceptor.deactivate() is True
    assert driver.level is False
    assert acceptor.active is False


def test_activate_without_output_still_opens_gate(scheduler):
    acceptor = CoinAcceptor(
        MockCoinSlot(has_output=False),
        clock=scheduler.clock,
        schedule=scheduler.schedule,
        sleep=scheduler.advance,
    )

    assert acceptor.activate() is False
    assert acceptor.status()["active"] is True

    acceptor.inject_pulses(1)
    scheduler.advance(0.5)
    assert acceptor.total == 1

    assert acceptor.deactivate() is False
    assert acceptor.active is False


def test_custom_denominations(driver, scheduler):
    acceptor = CoinAcceptor(
        driver,
        denominations={2: 50},
        clock=scheduler.clock,
        schedule=scheduler.schedule,
        sleep=scheduler.advance,
    )
    acceptor.activate()
    acceptor.inject_pulses(2)
    scheduler.advance(0.5)
    assert acceptor.total == 50


def test_inject_requires_positive_count(acceptor):
    with pytest.raises(ValueError):
        acceptor.inject_pulses(0)


def test_running_total():
    total = RunningTotal()
    assert total.read() == 0
    assert total.add(5) == 5
    assert total.add(0) == 5
    with pytest.raises(ValueError):
        total.add(-1)
    assert total.read() == 5


def test_insert_then_disable_with_real_timers():
    acceptor = CoinAcceptor(MockCoinSlot(), debounce_window=0.5)
    try:
        acceptor.activate()
        acceptor.inject_pulses(1)
        time.sleep(0.6)
        assert acceptor.total == 1

        acceptor.inject_pulses(5, interval=0.04)
        time.sleep(0.6)
        assert acceptor.total == 6

        acceptor.deactivate()
        acceptor.inject_pulses(10)
        time.sleep(0.6)
        assert acceptor.total == 6
    finally:
        acceptor.close()


def test_deactivate_waits_for_pulse_in_progress(driver, scheduler):
    entered = threading.Event()
    release = threading.Event()
    armed = [False]

    def slow_clock():
        if armed[0]:
            armed[0] = False
            entered.set()
            release.wait(2.0)
        return scheduler.now

    acceptor = CoinAcceptor(driver, clock=slow_clock, schedule=scheduler.schedule, sleep=scheduler.advance)
    acceptor.activate()

    armed[0] = True
    pulse = threading.Thread(target=driver.simulate_pulse)
    pulse.start()
    assert entered.wait(2.0)

    deactivated = threading.Event()

    def stop():
        acceptor.deactivate()
        deactivated.set()

    stopper = threading.Thread(target=stop)
    stopper.start()

    # The gate cannot close while the pulse is still being counted
    assert not deactivated.wait(0.1)
    release.set()
    pulse.join(2.0)
    stopper.join(2.0)

    assert deactivated.is_set()
    assert acceptor.active is False
    assert acceptor.pulse_count == 1

    driver.simulate_pulse()
    assert acceptor.pulse_count == 1
