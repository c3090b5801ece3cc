#!/usr/bin/env python3

"""
Stack Emulator

There is no stack pointer (SP) register exposed to a running program, and no
specified location for the stack in RAM, so it is kept in host memory as a
wrapped list.  The depth of the list is the stack pointer.

CALL pushes the address of the CALL instruction itself.  RET resumes at the
address after it, so the CPU adds 2 to whatever is popped.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"


class StackError(Exception):
    pass


class Stack:
    def __init__(self, size):
        self.items = []
        self.size = size

    @property
    def sp(self):
        return len(self.items)

    def push(self, item):
        # Fetching the stack size with 'len' should be immediate, so no slow loop
        if len(self.items) >= self.size:
            raise StackError("Stack overflow")

        self.items.append(item)

    def pop(self):
        try:
            return self.items.pop()
        except IndexError:
            raise StackError("Stack underflow") from None

    def clear(self):
        self.items.clear()

    def get_items(self):
        # For debugging
        return self.items
