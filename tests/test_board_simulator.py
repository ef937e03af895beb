"""Tests for the balance board simulator."""

import pytest

from cogboard.diagnostics.board_simulator import (
    BOARD_LENGTH_CM,
    BOARD_WIDTH_CM,
    FaultConfig,
    SimulatedBalanceBoard,
    SimulatorConfig,
    corner_loads,
)

from helpers import VirtualClock


class TestCornerLoads:
    def test_centred_load_is_even(self) -> None:
        loads = corner_loads(0.0, 0.0, 80.0)
        assert loads == pytest.approx((20.0, 20.0, 20.0, 20.0))

    def test_loads_sum_to_mass(self) -> None:
        assert sum(corner_loads(3.0, -2.0, 70.0)) == pytest.approx(70.0)

    def test_right_shift_loads_right_corners(self) -> None:
        tr, br, tl, bl = corner_loads(5.0, 0.0, 70.0)
        assert tr > tl
        assert br > bl

    def test_clamped_at_board_edge(self) -> None:
        tr, br, tl, bl = corner_loads(BOARD_WIDTH_CM, BOARD_LENGTH_CM, 70.0)
        assert tr == pytest.approx(70.0)
        assert (br, tl, bl) == pytest.approx((0.0, 0.0, 0.0))


class TestSimulatedBalanceBoard:
    def test_reads_after_connect(self, virtual_clock: VirtualClock) -> None:
        board = SimulatedBalanceBoard(SimulatorConfig(seed=42), clock=virtual_clock)
        handle = board.connect()
        x, y = board.read_cog_state(handle)
        sensors = board.read_sensor_state(handle)
        assert isinstance(x, float) and isinstance(y, float)
        assert len(sensors) == 4
        assert sum(sensors) == pytest.approx(70.0)
        assert 0.0 < board.read_battery_state(handle) <= 0.9

    def test_seed_is_reproducible(self, virtual_clock: VirtualClock) -> None:
        a = SimulatedBalanceBoard(SimulatorConfig(seed=7), clock=virtual_clock)
        b = SimulatedBalanceBoard(SimulatorConfig(seed=7), clock=virtual_clock)
        assert a.read_cog_state(a.connect()) == b.read_cog_state(b.connect())

    def test_polling_faster_than_refresh_repeats_reading(self, virtual_clock: VirtualClock) -> None:
        board = SimulatedBalanceBoard(SimulatorConfig(seed=1, refresh_rate_hz=10.0), clock=virtual_clock)
        handle = board.connect()
        first = board.read_cog_state(handle)
        virtual_clock.advance(0.05)
        assert board.read_cog_state(handle) == first
        virtual_clock.advance(0.06)
        assert board.read_cog_state(handle) != first

    def test_injected_read_failure(self) -> None:
        board = SimulatedBalanceBoard(SimulatorConfig(faults=FaultConfig(fail_read_at=3)))
        handle = board.connect()
        board.read_cog_state(handle)
        board.read_cog_state(handle)
        with pytest.raises(OSError, match="read 3"):
            board.read_cog_state(handle)
        board.read_cog_state(handle)

    def test_closed_handle_raises(self) -> None:
        board = SimulatedBalanceBoard()
        handle = board.connect()
        board.disconnect_all()
        with pytest.raises(OSError, match="not connected"):
            board.read_cog_state(handle)

    def test_battery_drains(self, virtual_clock: VirtualClock) -> None:
        config = SimulatorConfig(battery_start=0.5, battery_drain_per_second=0.01)
        board = SimulatedBalanceBoard(config, clock=virtual_clock)
        handle = board.connect()
        virtual_clock.advance(10.0)
        assert board.read_battery_state(handle) == pytest.approx(0.4)

    def test_button_press_after(self) -> None:
        board = SimulatedBalanceBoard(SimulatorConfig(faults=FaultConfig(button_press_after=2)))
        handle = board.connect()
        presses = [board.is_button_pressed(handle, "A") for _ in range(3)]
        assert presses == [False, False, True]
