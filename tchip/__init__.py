#!/usr/bin/env python3

"""
Main Startup Module

Simply call main(args) to start the emulator, replacing args with a dictionary
of options.  This can be done via the Terminal or GUI.

All options must be supplied.  Defaults can be specified with a 'None'.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from threading import Event
from time import perf_counter
from .constants import APP_INTRO, APP_COPYRIGHT, STACK_SIZE
from .cpu import CPU, CPUError
from .debugger import Debugger
from .framebuffer import Framebuffer
from .hostio import Loader
from .ram import RAM, RAMError
from .scheduler import Scheduler
from .stack import Stack, StackError


class StartupError(Exception):
    pass


def select_plugins(opt_renderer, mute_audio):
    # Returns the Renderer, Inputs and Audio classes to use
    auto_select_renderer = opt_renderer is None  # If necessary, try PyGame first, then Curses.

    # flake8: noqa: F401
    if auto_select_renderer or opt_renderer == "pygame":
        # pylint: disable=unused-import, import-outside-toplevel, raise-missing-from
        try:
            import pygame
        except ImportError:
            if auto_select_renderer:
                opt_renderer = "curses"
            else:
                raise StartupError(
                    "PyGame does not appear to be installed."
                )
        else:
            from .inputs.i_pygame import Inputs
            from .renderers.r_pygame import Renderer

            # PyGame can handle proper waveforms
            if mute_audio:
                from .audio.a_null import Audio
            else:
                from .audio.a_pygame import Audio

            return Renderer, Inputs, Audio

    if opt_renderer == "curses":
        # pylint: disable=unused-import, import-outside-toplevel, raise-missing-from
        try:
            import curses
        except ImportError:
            if auto_select_renderer:
                raise StartupError(
                    "Neither PyGame nor Curses (or Windows-Curses) appear to be installed."
                )

            raise StartupError(
                "Curses (or Windows-Curses) does not appear to be installed."
            )
        else:
            from .inputs.i_curses import Inputs
            from .renderers.r_curses import Renderer

            # Terminals can handle fixed-length beeps, but not sampled sound
            if mute_audio or mute_audio is None:
                from .audio.a_null import Audio
            else:
                from .audio.a_curses import Audio

            return Renderer, Inputs, Audio

    # pylint: disable=import-outside-toplevel
    from .inputs.i_null import Inputs
    from .renderers.r_null import Renderer
    from .audio.a_null import Audio

    return Renderer, Inputs, Audio


class HostService:
    # Called by the Scheduler at 60Hz on the main thread.  Returns True if the user asked to quit.

    def __init__(self, cpu, framebuffer, inputs):
        self.cpu = cpu
        self.framebuffer = framebuffer
        self.inputs = inputs
        self.perf_counter_fps = 0
        self.last_ops = 0  # The CPU thread owns cpu.ops, so only take differences of it here
        self.next_perf_report_time = 0

    def __call__(self):
        this_time = perf_counter()

        # Performance counters
        if this_time >= self.next_perf_report_time:
            self.next_perf_report_time = int(this_time) + 1.0
            # Reporting the performance should be done before a refresh, as refreshing will likely show the report
            ops = self.cpu.ops
            self.framebuffer.report_perf(self.perf_counter_fps, ops - self.last_ops)
            self.last_ops = ops
            self.perf_counter_fps = 0

        if self.inputs.process_messages():
            return True

        self.framebuffer.refresh_display()
        self.perf_counter_fps += 1
        return False


def main(args):
    print("".join((APP_INTRO, APP_COPYRIGHT)))

    Renderer, Inputs, Audio = select_plugins(args["renderer"], args["mute"])

    # Read ROM binary before touching the display, so a bad filename doesn't leave the Terminal in a mess
    rom = Loader().load_binary(args["filename"])

    # Anything that fails from here on must still give back whatever plugins were already started
    renderer = None
    inputs = None
    audio = None
    crash_report = None

    try:
        # Set up a new rendering system, and attach a framebuffer to it
        renderer = Renderer(scale=args["scale"])
        framebuffer = Framebuffer(renderer)

        # Set up host inputs, and link to the chosen rendering module in case it provides inputs too
        inputs = Inputs(args["keymap"], renderer)
        audio = Audio()

        # Set up debugger and live output if necessary
        debugger = Debugger()
        debugger.set_live(args["debug"])

        # Create a new CPU, plug it into the rest of the system, and load the program at the default address
        stop_event = Event()
        cpu = CPU(RAM(), Stack(STACK_SIZE), framebuffer, inputs, audio, debugger, stop_event)
        scheduler = Scheduler(
            cpu, stop_event, cpu_freq=args["clock_speed"], timer_freq=args["timer_speed"],
            host=HostService(cpu, framebuffer, inputs)
        )
        cpu.load(rom)

        try:
            scheduler.run()
        except (CPUError, RAMError, StackError):
            crash_report = "Emulation halted.\n\n{}Debug info:\n{}".format(
                APP_INTRO, debugger.debug(cpu, verbose=True)
            )
            raise
    finally:
        # The CPU has quit, so shut down the rendering framework.  __del__ cannot be relied upon when using PyPy
        if audio is not None:
            audio.shutdown()

        if inputs is not None:
            inputs.shutdown()

        if renderer is not None:
            renderer.shutdown()

        # Print after the renderer has released the Terminal
        if crash_report:
            print(crash_report)
