#!/usr/bin/env python3

"""
Scheduler

Runs the CPU with two independent clocks, each on its own thread:

    * The instruction clock, which calls CPU.step() (500Hz by default).
    * The timer clock, which calls CPU.tick_timers() at 60Hz.

Programs expect the timers to count down at a steady 60Hz, regardless of how
many instructions run in between, so the clocks are not derived from each
other.  Each clock keeps an absolute schedule, so time spent inside one tick
does not push the following ticks back.  While the CPU is blocked waiting for a
keypress, the timer clock carries on.

Meanwhile the calling thread services the host (display refresh and input
events) at 60Hz, since windowing libraries usually expect to be driven from the
main thread.

A single stop event ends everything.  It can be set by the host (e.g. ESC
pressed), by the caller, or by a clock that hit a fatal error.  In the last
case, the error is raised again from run().
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from threading import Thread
from time import perf_counter
from .constants import CPU_FREQ, TIMER_FREQ, HOST_FREQ


class Clock:
    def __init__(self, frequency, action, stop_event, name="clock"):
        if frequency <= 0:
            raise ValueError("Clock frequency must be above zero")

        self.interval = 1.0 / frequency
        self.action = action
        self.stop_event = stop_event
        self.name = name
        self.ticks = 0
        self.error = None

    def run(self, max_ticks=None):
        interval = self.interval
        stop_event = self.stop_event
        next_time = perf_counter()

        try:
            while max_ticks is None or self.ticks < max_ticks:
                # Sleep until the next tick is due, waking early if asked to stop
                if stop_event.wait(max(0.0, next_time - perf_counter())):
                    break

                self.action()
                self.ticks += 1
                next_time += interval

                if next_time < perf_counter() - interval:
                    # Too far behind (e.g. after a keypress wait), so don't try to catch up with a burst of ticks
                    next_time = perf_counter()
        except Exception as err:  # pylint: disable=broad-except
            # Hand the failure over to the scheduler thread, which raises it again
            self.error = err
            stop_event.set()

    def start(self):
        thread = Thread(target=self.run, name=self.name)
        thread.daemon = True
        thread.start()
        return thread


class Scheduler:
    def __init__(self, cpu, stop_event, cpu_freq=None, timer_freq=None, host=None):
        self.cpu = cpu
        self.stop_event = stop_event
        self.host = host
        self.cpu_clock = Clock(CPU_FREQ if cpu_freq is None else cpu_freq, cpu.step, stop_event, "cpu-clock")
        self.timer_clock = Clock(
            TIMER_FREQ if timer_freq is None else timer_freq, cpu.tick_timers, stop_event, "timer-clock"
        )

    def run(self):
        threads = [self.cpu_clock.start(), self.timer_clock.start()]
        host_interval = 1.0 / HOST_FREQ

        try:
            while not self.stop_event.is_set():
                if self.host is not None and self.host():
                    break

                self.stop_event.wait(host_interval)
        finally:
            self.stop()

            for thread in threads:
                thread.join()

        for clock in self.cpu_clock, self.timer_clock:
            if clock.error is not None:
                raise clock.error

    def stop(self):
        self.stop_event.set()
