#!/usr/bin/env python3

"""
CPU Emulator (CHIP-8)

Like a real computer, this is where most of the processing happens.  Each call
to step() runs a single fetch, decode and execute cycle.  The CPU does not keep
time by itself.  The Scheduler calls step() at the instruction clock rate, and
tick_timers() at the independent 60Hz timer rate.

Instructions are looked up in a dispatch table, keyed by the opcode masked
down to the bits that identify the instruction:

    0x0nnn           - the full opcode
    0x8nnn           - bitmask 0xF00F (ALU operations)
    0xEnnn and 0xFnnn - bitmask 0xF0FF
    everything else  - the first nibble only (bitmask 0xF000)

Every instruction returns the new program counter, rather than relying on a
shared post-increment.  Most return the next instruction (PC + 2), skips return
PC + 4 when taken, and jumps, calls and returns give an absolute address.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from random import randint
from threading import Event, Lock
from .constants import FONT_GLYPH_SIZE, FONT_LOCATION, MEM_SIZE, PROGRAM_LOCATION, PROGRAM_SPACE, SYSTEM_FONT

CPU_ENDIAN = "big"  # CHIP-8 is big-endian
ADDR_MASK = 0xFFF   # 12-bit address space


class CPUError(Exception):
    pass


class UnknownOpcode(CPUError):
    def __init__(self, opcode, address):
        self.opcode = opcode
        self.address = address
        super().__init__("Opcode 0x{:04x} at address 0x{:03x} is not emulated.".format(opcode, address))


class ImageTooLarge(CPUError):
    def __init__(self, size):
        self.size = size
        super().__init__(
            "Program is {} bytes long, but only {} bytes of memory are available.".format(size, PROGRAM_SPACE)
        )


def dispatch_key(opcode):
    family = opcode & 0xF000

    if family == 0x0000:
        return opcode

    if family == 0x8000:
        return opcode & 0xF00F

    if family == 0xE000 or family == 0xF000:
        return opcode & 0xF0FF

    return family


class CPU:
    def __init__(self, ram, stack, framebuffer, inputs, audio, debugger, stop_event=None):
        self.ram = ram
        self.stack = stack
        self.framebuffer = framebuffer
        self.inputs = inputs
        self.audio = audio
        self.debugger = debugger
        self.live_debug = self.debugger.is_live()
        self.stop_event = Event() if stop_event is None else stop_event

        # Timers are decremented from the timer thread, and read or set from the CPU thread
        self.timer_lock = Lock()

        # Define instruction pointers.
        # n = Nibble
        # kk = Byte
        # nnn = address
        # x/y = register (0-15)
        self.instructions = {
            # Instructions beginning with nibble 0x0, exact match
            0x00E0: self._00E0,
            0x00EE: self._00EE,
            # Instructions identified by their first nibble
            0x1000: self._1nnn,
            0x2000: self._2nnn,
            0x3000: self._3xkk,
            0x4000: self._4xkk,
            0x5000: self._5xy0,
            0x6000: self._6xkk,
            0x7000: self._7xkk,
            0x9000: self._9xy0,
            0xA000: self._Annn,
            0xB000: self._Bnnn,
            0xC000: self._Cxkk,
            0xD000: self._Dxyn,
            # Instructions beginning with nibble 0x8, bitmask 0xF00F
            0x8000: self._8xy0,
            0x8001: self._8xy1,
            0x8002: self._8xy2,
            0x8003: self._8xy3,
            0x8004: self._8xy4,
            0x8005: self._8xy5,
            0x8006: self._8xy6,
            0x8007: self._8xy7,
            0x800E: self._8xyE,
            # Instructions beginning with nibble 0xE/0xF, bitmask 0xF0FF
            0xE09E: self._Ex9E,
            0xE0A1: self._ExA1,
            0xF007: self._Fx07,
            0xF00A: self._Fx0A,
            0xF015: self._Fx15,
            0xF018: self._Fx18,
            0xF01E: self._Fx1E,
            0xF029: self._Fx29,
            0xF033: self._Fx33,
            0xF055: self._Fx55,
            0xF065: self._Fx65
        }

        self.reset()

    def reset(self):
        # Allocate memory and write the system font into the bottom of it
        self.ram.resize(MEM_SIZE)
        self.ram.write_block(FONT_LOCATION, SYSTEM_FONT)
        self.stack.clear()

        # Initialise registers
        self.v = memoryview(bytearray(16))  # Bytearrays are mutable, so this should be fast when a register is updated
        self.i = 0  # Index register

        # Initialise timers
        self.dt = 0  # Delay timer
        self.st = 0  # Sound timer

        # Initialise program counter and current opcode
        self.pc = PROGRAM_LOCATION
        self.debug_pc = PROGRAM_LOCATION
        self.opcode = 0

        # Performance counter.  Only ever incremented here, the host reports the difference between readings
        self.ops = 0

        self.framebuffer.clear()

    def load(self, data):
        # Check before writing anything, so a failed load leaves memory untouched
        if len(data) > PROGRAM_SPACE:
            raise ImageTooLarge(len(data))

        self.ram.write_block(PROGRAM_LOCATION, data)

    def step(self):
        # Returns False if the instruction was abandoned because the CPU was asked to stop
        self.debug_pc = self.pc  # Do this all the time in case there is a crash
        self.opcode = self.fetch()
        instruction = self.instructions.get(dispatch_key(self.opcode))

        if instruction is None:
            raise UnknownOpcode(self.opcode, self.debug_pc)

        if self.live_debug:
            self.debugger.output(self)

        new_pc = instruction()

        if new_pc is None:
            return False

        self.pc = new_pc & ADDR_MASK
        self.ops += 1
        return True

    def fetch(self):
        return int.from_bytes(self.ram.read_block(self.pc, 2), CPU_ENDIAN, signed=False)

    def tick_timers(self):
        with self.timer_lock:
            if self.dt > 0:
                self.dt -= 1

            beep = self.st > 0

            if beep:
                self.st -= 1

        if beep:
            self.audio.beep()

    # References to Vx, Vy, byte and addr are always in the same opcode position throughout all instructions, so avoid
    # excessive code duplication (ever so slight slowdown).  Don't reference these more than necessary as they are
    # recalculated each time.
    @property
    def vx(self):
        return (self.opcode & 0xF00) >> 8

    @property
    def vy(self):
        return (self.opcode & 0xF0) >> 4

    @property
    def addr(self):
        return self.opcode & 0xFFF

    @property
    def byte(self):
        return self.opcode & 0xFF

    @property
    def nibble(self):
        return self.opcode & 0xF

    def _next(self):
        return self.pc + 2

    def _skip_if(self, condition):
        return self.pc + (4 if condition else 2)

    def _00E0(self):  # CLS
        self.framebuffer.clear()
        return self._next()

    def _00EE(self):  # RET
        # The stack holds the address of the CALL itself
        return self.stack.pop() + 2

    def _1nnn(self):  # JP addr
        return self.addr

    def _2nnn(self):  # CALL addr
        self.stack.push(self.pc)
        return self.addr

    def _3xkk(self):  # SE Vx, byte
        return self._skip_if(self.v[self.vx] == self.byte)

    def _4xkk(self):  # SNE Vx, byte
        return self._skip_if(self.v[self.vx] != self.byte)

    def _5xy0(self):  # SE Vx, Vy
        return self._skip_if(self.v[self.vx] == self.v[self.vy])

    def _6xkk(self):  # LD Vx, byte
        self.v[self.vx] = self.byte
        return self._next()

    def _7xkk(self):  # ADD Vx, byte
        # No carry flag for this one
        vx = self.vx
        self.v[vx] = (self.v[vx] + self.byte) & 0xFF
        return self._next()

    def _8xy0(self):  # LD Vx, Vy
        self.v[self.vx] = self.v[self.vy]
        return self._next()

    def _8xy1(self):  # OR Vx, Vy
        self.v[self.vx] |= self.v[self.vy]
        return self._next()

    def _8xy2(self):  # AND Vx, Vy
        self.v[self.vx] &= self.v[self.vy]
        return self._next()

    def _8xy3(self):  # XOR Vx, Vy
        self.v[self.vx] ^= self.v[self.vy]
        return self._next()

    # Flag instructions read both operands first, then write Vf, then Vx.  If Vx is Vf, the result wins.

    def _8xy4(self):  # ADD Vx, Vy
        val = self.v[self.vx] + self.v[self.vy]
        self.v[0xF] = int(val > 0xFF)  # Vf is set when carrying
        self.v[self.vx] = val & 0xFF
        return self._next()

    def _8xy5(self):  # SUB Vx, Vy
        x_val = self.v[self.vx]
        y_val = self.v[self.vy]
        self.v[0xF] = int(x_val >= y_val)  # Vf is set when NOT borrowing
        self.v[self.vx] = (x_val - y_val) & 0xFF
        return self._next()

    def _8xy6(self):  # SHR Vx
        val = self.v[self.vx]
        self.v[0xF] = val & 1
        self.v[self.vx] = val >> 1
        return self._next()

    def _8xy7(self):  # SUBN Vx, Vy
        x_val = self.v[self.vx]
        y_val = self.v[self.vy]
        self.v[0xF] = int(y_val >= x_val)
        self.v[self.vx] = (y_val - x_val) & 0xFF
        return self._next()

    def _8xyE(self):  # SHL Vx
        # Vf receives the masked top bit as-is (0x00 or 0x80), not 0 or 1
        val = self.v[self.vx]
        self.v[0xF] = val & 0x80
        self.v[self.vx] = (val << 1) & 0xFF
        return self._next()

    def _9xy0(self):  # SNE Vx, Vy
        return self._skip_if(self.v[self.vx] != self.v[self.vy])

    def _Annn(self):  # LD I, addr
        self.i = self.addr
        return self._next()

    def _Bnnn(self):  # JP V0, addr
        return self.addr + self.v[0]

    def _Cxkk(self):  # RND Vx, byte
        # The ANDing here is intentional.  This is not a random number between 0 and 'byte' inclusive.
        self.v[self.vx] = randint(0, 0xFF) & self.byte
        return self._next()

    def _Dxyn(self):  # DRW Vx, Vy, nibble
        # Sprite rows are read from I onwards.  I itself doesn't change.
        rows = self.ram.read_block(self.i, self.nibble)
        self.v[0xF] = int(self.framebuffer.draw(self.v[self.vx], self.v[self.vy], rows))
        return self._next()

    def _Ex9E(self):  # SKP Vx
        return self._skip_if(self.inputs.is_key_down(self.v[self.vx]))

    def _ExA1(self):  # SKNP Vx
        return self._skip_if(not self.inputs.is_key_down(self.v[self.vx]))

    def _Fx07(self):  # LD Vx, DT
        with self.timer_lock:
            self.v[self.vx] = self.dt

        return self._next()

    def _Fx0A(self):  # LD Vx, K
        # Blocks this thread only.  The timers carry on counting down while we wait.
        key = self.inputs.wait_key(self.stop_event)

        if key is None:
            # Asked to stop before a key arrived.  Leave the PC here.
            return None

        self.v[self.vx] = key
        return self._next()

    def _Fx15(self):  # LD DT, Vx
        with self.timer_lock:
            self.dt = self.v[self.vx]

        return self._next()

    def _Fx18(self):  # LD ST, Vx
        with self.timer_lock:
            self.st = self.v[self.vx]

        return self._next()

    def _Fx1E(self):  # ADD I, Vx
        val = self.i + self.v[self.vx]
        self.i = val & ADDR_MASK
        self.v[0xF] = int(val > ADDR_MASK)
        return self._next()

    def _Fx29(self):  # LD F, Vx
        self.i = (FONT_LOCATION + FONT_GLYPH_SIZE * self.v[self.vx]) & ADDR_MASK
        return self._next()

    def _Fx33(self):  # LD B, Vx
        # Written as one block, so an overflow leaves memory untouched
        val = self.v[self.vx]
        self.ram.write_block(self.i, bytes((
            val // 100,         # Most-significant digit
            (val // 10) % 10,   # Middle digit
            val % 10            # Least-significant digit
        )))
        return self._next()

    def _Fx55(self):  # LD [I], Vx
        # Ensure with +1s that the final register is copied.  I is left alone.
        self.ram.write_block(self.i, self.v[:self.vx + 1])
        return self._next()

    def _Fx65(self):  # LD Vx, [I]
        vx = self.vx
        self.v[:vx + 1] = self.ram.read_block(self.i, vx + 1)
        return self._next()
