#!/usr/bin/env python3

"""
PyGame Audio Plugin

Plays a short square-wave pulse within PyGame / SDL every time the CPU beeps.

The emulated waveform is a 1-bit, 16-step square wave.  It has to effectively
be stretched lengthways and have its offset moved to fit in a modern 8-bit
PyGame / SDL buffer, but it will retain the shape of a square wave.  A pulse
lasts one timer tick, so a running sound timer produces a continuous tone.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import pygame
from .a_null import Audio as AudioBase
from ..constants import TIMER_FREQ

PLAYBACK_FREQUENCY = 44100.0
WAVE_FREQUENCY = 4000.0  # Playback rate of the 16-step waveform
DEFAULT_VOLUME = 0.1
DEFAULT_WAVEFORM = b"\x00\xFF" * 8


class Audio(AudioBase):
    def __init__(self, waveform=DEFAULT_WAVEFORM):
        pygame.mixer.pre_init(int(PLAYBACK_FREQUENCY), size=8, channels=1, buffer=512, allowedchanges=0)
        pygame.mixer.init()
        self.sound = pygame.mixer.Sound(buffer=self.resample(waveform))
        self.sound.set_volume(DEFAULT_VOLUME)
        self.pulse_ms = int(1000.0 / TIMER_FREQ)

    def resample(self, buffer):
        # Stretch the width and height of the emulated square waveform to fit the host buffer
        sample_multiplier = PLAYBACK_FREQUENCY / WAVE_FREQUENCY
        resampled_buffer_size = int(128 * sample_multiplier)  # 16-bit (2-byte) input buffer width * 8-bit output height
        resampled_buffer = bytearray(resampled_buffer_size)

        for resampled_buffer_pos in range(resampled_buffer_size):
            buffer_byte_pos = resampled_buffer_pos / sample_multiplier
            byte = int(buffer_byte_pos / 8.0)
            bit = 7 - int(buffer_byte_pos % 8.0)
            resampled_buffer[resampled_buffer_pos] = ((buffer[byte] >> bit) & 1) * 0xFF

        return bytes(resampled_buffer)

    def beep(self):
        # Loop the sample for slightly longer than one timer tick, so consecutive beeps run together
        self.sound.play(loops=-1, maxtime=self.pulse_ms + 2)

    def shutdown(self):
        self.sound.stop()
        pygame.mixer.quit()
        super().shutdown()
