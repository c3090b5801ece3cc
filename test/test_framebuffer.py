#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import unittest
from tchip.renderers.r_null import Renderer
from tchip.framebuffer import Framebuffer


class RecordingRenderer(Renderer):
    def __init__(self):
        self.pixels = {}
        self.refreshes = 0
        self.title = None
        super().__init__()

    def set_pixel(self, x, y, colour):
        self.pixels[(x, y)] = colour

    def refresh_display(self):
        self.refreshes += 1

    def set_title(self, title):
        self.title = title


class TestFrameBuffer(unittest.TestCase):
    def setUp(self):
        self.renderer = RecordingRenderer()
        self.framebuffer = Framebuffer(self.renderer)

    def _lit_pixels(self):
        fb = self.framebuffer
        return [(x, y) for y in range(fb.vid_height) for x in range(fb.vid_width) if fb.get_pixel(x, y)]

    def test_framebuffer_resize_vid(self):
        self.assertEqual((64, 32), self.framebuffer.get_vid_size())
        self.assertEqual((64, 32), (self.renderer.width, self.renderer.height))
        self.assertEqual(64 * 32, self.framebuffer.plane.mem_size)

    def test_framebuffer_collision(self):
        fb = self.framebuffer
        self.assertFalse(fb.draw(0, 0, b"\xFF"))
        self.assertEqual([(x, 0) for x in range(8)], self._lit_pixels())
        self.assertTrue(fb.draw(0, 0, b"\xFF"))
        self.assertEqual([], self._lit_pixels())

    def test_framebuffer_partial_collision(self):
        fb = self.framebuffer
        fb.draw(4, 2, b"\x01")
        # Only one pixel overlaps, but that is enough to flag the whole draw
        self.assertTrue(fb.draw(4, 2, b"\x81\x80"))
        self.assertEqual([(4, 2), (4, 3)], self._lit_pixels())

    def test_framebuffer_clipping(self):
        fb = self.framebuffer
        self.assertFalse(fb.draw(60, 31, b"\xFF\xFF"))
        # Nothing wraps around to the left or top
        self.assertEqual([(60, 31), (61, 31), (62, 31), (63, 31)], self._lit_pixels())
        self.assertFalse(fb.draw(64, 0, b"\xFF"))
        self.assertFalse(fb.draw(0, 32, b"\xFF"))
        self.assertEqual(4, len(self._lit_pixels()))

    def test_framebuffer_clear(self):
        fb = self.framebuffer
        fb.draw(10, 10, b"\xAA\x55")
        fb.clear()
        self.assertEqual([], self._lit_pixels())
        self.assertFalse(fb.draw(10, 10, b"\xAA"))

    def test_framebuffer_refresh(self):
        fb = self.framebuffer
        fb.refresh_display()
        self.renderer.pixels.clear()
        fb.draw(1, 2, b"\xC0")
        fb.refresh_display()
        self.assertEqual({(1, 2): 1, (2, 2): 1}, self.renderer.pixels)
        self.renderer.pixels.clear()
        fb.draw(1, 2, b"\x80")
        fb.refresh_display()
        self.assertEqual({(1, 2): 0}, self.renderer.pixels)
        self.renderer.pixels.clear()
        fb.refresh_display()
        self.assertEqual({}, self.renderer.pixels)
        self.assertEqual(4, self.renderer.refreshes)

    def test_framebuffer_refresh_after_clear(self):
        fb = self.framebuffer
        fb.clear()
        fb.refresh_display()
        self.assertEqual(64 * 32, len(self.renderer.pixels))
        self.assertFalse(any(self.renderer.pixels.values()))

    def test_framebuffer_report_perf(self):
        self.framebuffer.report_perf(60, 500)
        self.assertTrue(self.renderer.title.endswith("60 FPS, 500 OPS"))
