#!/usr/bin/env python3

"""
Framebuffer Emulator

This is the display device seen by the CPU.  Programs cannot write directly
into video RAM.  Instead, sprites are drawn using an XOR method against a
single 64x32 monochrome plane, and the CPU is told whether any lit pixel was
switched off (a collision).

Sprites are clipped at the right and bottom edges of the screen.  Any part of
a sprite that falls off the screen is dropped, never wrapped around.

Drawing happens on the CPU thread, while the host rendering system is only
updated from the host thread (usually at 60Hz) via refresh_display.  Pixels
changed in between are remembered, so only those are sent to the renderer.
PyGame/Curses can lower speed substantially when called from several threads,
or hundreds of times a second.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from threading import Lock
from .constants import APP_NAME, VID_WIDTH, VID_HEIGHT
from .ram import RAM


class Framebuffer:
    def __init__(self, renderer, vid_width=VID_WIDTH, vid_height=VID_HEIGHT):
        self.renderer = renderer
        self.lock = Lock()
        self.plane = RAM()
        self.dirty = set()
        self.vid_width = 0
        self.vid_height = 0
        self.vid_size = 0
        self.report_perf()
        self.resize_vid(vid_width, vid_height)

    def resize_vid(self, vid_width, vid_height):
        self.vid_width = vid_width
        self.vid_height = vid_height
        self.vid_size = self.vid_width * self.vid_height

        with self.lock:
            self.plane.resize(self.vid_size)
            self.dirty.clear()

        self.renderer.set_resolution(vid_width, vid_height)  # Update screen resolution

    def clear(self):
        with self.lock:
            self.plane.clear()
            # Send everything on the next refresh
            self.dirty.update(range(self.vid_size))

    def draw(self, x, y, rows):
        # Returns True if any set pixel was unset by the XOR
        vid_width = self.vid_width
        vid_height = self.vid_height
        mem = self.plane.mem
        collision = False

        with self.lock:
            for row_num, spr_data in enumerate(rows):
                scr_y = y + row_num

                if scr_y >= vid_height:
                    break

                for col in range(8):
                    if not spr_data & (0x80 >> col):
                        continue

                    scr_x = x + col

                    if scr_x >= vid_width:
                        break

                    vram_loc = scr_y * vid_width + scr_x

                    if mem[vram_loc]:
                        collision = True

                    mem[vram_loc] ^= 0xFF
                    self.dirty.add(vram_loc)

        return collision

    def get_pixel(self, x, y):
        return bool(self.plane.read(y * self.vid_width + x))

    def refresh_display(self):
        # Render pending delta screen updates
        with self.lock:
            dirty = self.dirty
            self.dirty = set()
            pixels = [(loc, self.plane.mem[loc]) for loc in dirty]

        vid_width = self.vid_width

        for vram_loc, pixel in pixels:
            self.renderer.set_pixel(vram_loc % vid_width, vram_loc // vid_width, 1 if pixel else 0)

        self.renderer.refresh_display()

    def get_vid_size(self):
        return self.vid_width, self.vid_height

    def report_perf(self, fps=0, ops=0):
        title = "{} - {} FPS, {} OPS".format(APP_NAME, fps, ops)
        self.renderer.set_title(title)
