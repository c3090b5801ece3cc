#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import unittest
from threading import Event, Timer
from time import perf_counter
from tchip.audio.a_null import Audio
from tchip.constants import DEFAULT_KEYMAP
from tchip.cpu import CPU, UnknownOpcode
from tchip.debugger import Debugger
from tchip.framebuffer import Framebuffer
from tchip.inputs.i_null import Inputs
from tchip.ram import RAM
from tchip.renderers.r_null import Renderer
from tchip.scheduler import Clock, Scheduler
from tchip.stack import Stack

# Upper bound on any test run, so a broken scheduler fails rather than hangs
TEST_DEADLINE = 5.0


class TestClock(unittest.TestCase):
    def test_clock_max_ticks(self):
        calls = []
        clock = Clock(200, lambda: calls.append(perf_counter()), Event())
        clock.run(max_ticks=5)
        self.assertEqual(5, len(calls))
        self.assertEqual(5, clock.ticks)
        # Ticks are spread out at the clock rate, not run back to back
        self.assertGreaterEqual(calls[-1] - calls[0], 4 * 0.005 * 0.9)

    def test_clock_stopped(self):
        stop_event = Event()
        stop_event.set()
        calls = []
        clock = Clock(200, lambda: calls.append(1), stop_event)
        clock.run()
        self.assertEqual([], calls)

    def test_clock_error(self):
        stop_event = Event()

        def fail():
            raise ValueError("broken")

        clock = Clock(200, fail, stop_event)
        clock.run()
        self.assertIsInstance(clock.error, ValueError)
        self.assertTrue(stop_event.is_set())

    def test_clock_bad_frequency(self):
        self.assertRaises(ValueError, Clock, 0, lambda: None, Event())


class TestScheduler(unittest.TestCase):
    def setUp(self):
        self.stop_event = Event()
        renderer = Renderer()
        self.cpu = CPU(
            RAM(), Stack(16), Framebuffer(renderer), Inputs(DEFAULT_KEYMAP, renderer), Audio(), Debugger(),
            self.stop_event
        )
        self.deadline = perf_counter() + TEST_DEADLINE

    def _host_until(self, condition):
        # Build a host function which quits once the condition holds (or the test has taken too long)
        return lambda: condition() or perf_counter() > self.deadline

    def test_scheduler_timer_countdown(self):
        self.cpu.dt = 5
        clock = Clock(60, self.cpu.tick_timers, self.stop_event)
        clock.run(max_ticks=5)
        self.assertEqual(0, self.cpu.dt)
        clock.run(max_ticks=7)
        self.assertEqual(0, self.cpu.dt)

    def test_scheduler_self_loop(self):
        self.cpu.load(b"\x6A\x05\x12\x00")
        scheduler = Scheduler(self.cpu, self.stop_event, host=self._host_until(lambda: self.cpu.ops >= 20))
        self.assertIsNone(scheduler.run())
        self.assertLess(perf_counter(), self.deadline)
        self.assertEqual(5, self.cpu.v[0xA])
        self.assertIn(self.cpu.pc, (0x200, 0x202))

    def test_scheduler_unknown_opcode(self):
        self.cpu.load(b"\x6A\x05\x00\x00")
        scheduler = Scheduler(self.cpu, self.stop_event)

        with self.assertRaises(UnknownOpcode) as context:
            scheduler.run()

        self.assertEqual(0x202, context.exception.address)
        self.assertTrue(self.stop_event.is_set())

    def test_scheduler_stop_during_key_wait(self):
        # LD V0, K with no keyboard attached.  Only the stop signal can end this.
        self.cpu.load(b"\xF0\x0A")
        timer = Timer(0.1, self.stop_event.set)
        timer.start()

        try:
            self.assertIsNone(Scheduler(self.cpu, self.stop_event).run())
        finally:
            timer.cancel()

        self.assertEqual(0x200, self.cpu.pc)
        self.assertEqual(0, self.cpu.ops)

    def test_scheduler_timers_run_during_key_wait(self):
        # LD VA, 0x3C / LD DT, VA / LD V0, K
        self.cpu.load(b"\x6A\x3C\xFA\x15\xF0\x0A")
        scheduler = Scheduler(
            self.cpu, self.stop_event, host=self._host_until(lambda: self.cpu.pc == 0x204 and self.cpu.dt < 50)
        )
        scheduler.run()
        self.assertLess(perf_counter(), self.deadline)
        self.assertEqual(0x204, self.cpu.pc)
        self.assertLess(self.cpu.dt, 50)

    def test_scheduler_host_quit(self):
        self.cpu.load(b"\x12\x00")
        calls = []

        def host():
            calls.append(1)
            return len(calls) >= 3

        Scheduler(self.cpu, self.stop_event, host=host).run()
        self.assertEqual(3, len(calls))
        self.assertTrue(self.stop_event.is_set())

    def test_scheduler_external_stop(self):
        self.cpu.load(b"\x12\x00")
        scheduler = Scheduler(self.cpu, self.stop_event)
        timer = Timer(0.05, scheduler.stop)
        timer.start()

        try:
            self.assertIsNone(scheduler.run())
        finally:
            timer.cancel()

        self.assertGreater(self.cpu.ops, 0)
