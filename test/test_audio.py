#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import unittest
from tchip.audio.a_null import Audio


class TestAudio(unittest.TestCase):
    def test_audio_null_beep(self):
        audio = Audio()
        self.assertIsNone(audio.beep())
        audio.shutdown()

    def test_audio_null_interface(self):
        # Plugins only offer the beep and shutdown calls used by the rest of the emulator
        self.assertEqual(
            ["beep", "shutdown"], sorted(name for name in vars(Audio) if not name.startswith("_"))
        )
