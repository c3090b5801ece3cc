#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import unittest
from threading import Event, Timer
from tchip.constants import DEFAULT_KEYMAP
from tchip.inputs.i_null import Inputs, InputsError


class TestInputs(unittest.TestCase):
    def setUp(self):
        self.inputs = Inputs(DEFAULT_KEYMAP, None)

    def test_inputs_keymap(self):
        self.assertEqual(0x0, self.inputs.keymap_dict[ord("x")])
        self.assertEqual(0x1, self.inputs.keymap_dict[ord("1")])
        self.assertEqual(0xF, self.inputs.keymap_dict[ord("v")])

    def test_inputs_keymap_lowercase(self):
        inputs = Inputs(DEFAULT_KEYMAP.replace("120", "88"), None, force_lowercase=True)
        self.assertEqual(0x0, inputs.keymap_dict[ord("x")])

    def test_inputs_keymap_errors(self):
        self.assertRaises(InputsError, Inputs, "1,2,3", None)
        self.assertRaises(InputsError, Inputs, DEFAULT_KEYMAP.replace("120", "a"), None)
        self.assertRaises(InputsError, Inputs, DEFAULT_KEYMAP.replace("120", "49"), None)

    def test_inputs_null_devices(self):
        self.assertFalse(self.inputs.process_messages())
        self.assertFalse(self.inputs.is_key_down(0x1))

    def test_inputs_wait_key_cancelled(self):
        stop_event = Event()
        stop_event.set()
        self.assertIsNone(self.inputs.wait_key(stop_event))

    def test_inputs_wait_key_pressed(self):
        def press():
            self.inputs.last_keypress = 0x5

        timer = Timer(0.05, press)
        timer.start()

        try:
            self.assertEqual(0x5, self.inputs.wait_key(Event()))
        finally:
            timer.cancel()

    def test_inputs_wait_key_ignores_earlier_press(self):
        self.inputs.last_keypress = 0x3
        stop_event = Event()
        timer = Timer(0.05, stop_event.set)
        timer.start()

        try:
            self.assertIsNone(self.inputs.wait_key(stop_event))
        finally:
            timer.cancel()
