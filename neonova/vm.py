"""Portable bytecode virtual machine with snapshot-based fault recovery."""

from __future__ import annotations

import logging
import struct
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable

logger = logging.getLogger(__name__)

MAX_REGS = 16
MAX_STACK = 256
MAX_CODE = 1024
MAX_RECOVERIES = 3

_U32 = 0xFFFFFFFF


class Opcode(IntEnum):
    """Instruction set of the bytecode VM."""

    NOP = 0
    LOAD_IMM = 1
    ADD = 2
    SUB = 3
    MUL = 4
    DIV = 5
    JMP = 6
    JZ = 7
    LOAD = 8
    STORE = 9
    SYSCALL = 10
    HALT = 11


class Arch(IntEnum):
    """Target architectures for compiled execution."""

    X86_64 = 0
    ARM = 1
    RISCV = 2
    PHOTONIC = 3
    UNKNOWN = 4


class VMError(Exception):
    """Raised when the VM cannot execute its program."""


@dataclass(frozen=True)
class VMSnapshot:
    """A saved copy of the VM's execution state."""

    regs: tuple[int, ...]
    stack: tuple[int, ...]
    pc: int
    sp: int
    code_size: int
    halted: bool


class VM:
    """Register machine executing little-endian bytecode on 32-bit registers."""

    def __init__(self, code: bytes | bytearray | None):
        self.code: bytes | None = None if code is None else bytes(code)
        self.regs: list[int] = [0] * MAX_REGS
        self.stack: list[int] = [0] * MAX_STACK
        self.pc = 0
        self.sp = 0
        self.code_size = 0 if self.code is None else len(self.code)
        self.halted = False
        self.quarantined = False
        self.recovery_count = 0
        self.exit_code: int | None = None
        self.printed: list[int] = []
        self._last_snapshot = self.snapshot()
        self._handlers: dict[int, Callable[[], None]] = {
            Opcode.NOP: lambda: None,
            Opcode.LOAD_IMM: self._op_load_imm,
            Opcode.ADD: lambda: self._op_binary(lambda a, b: a + b),
            Opcode.SUB: lambda: self._op_binary(lambda a, b: a - b),
            Opcode.MUL: lambda: self._op_binary(lambda a, b: a * b),
            Opcode.DIV: self._op_div,
            Opcode.JMP: self._op_jmp,
            Opcode.JZ: self._op_jz,
            Opcode.LOAD: self._op_load,
            Opcode.STORE: self._op_store,
            Opcode.SYSCALL: self._op_syscall,
            Opcode.HALT: self._op_halt,
        }

    def snapshot(self) -> VMSnapshot:
        """Capture the current execution state."""
        return VMSnapshot(
            regs=tuple(self.regs),
            stack=tuple(self.stack),
            pc=self.pc,
            sp=self.sp,
            code_size=self.code_size,
            halted=self.halted,
        )

    def restore(self, snap: VMSnapshot) -> None:
        """Put the VM back into a previously captured state."""
        self.regs = list(snap.regs)
        self.stack = list(snap.stack)
        self.pc = snap.pc
        self.sp = snap.sp
        self.code_size = snap.code_size
        self.halted = snap.halted

    def run(self) -> None:
        """Interpret the program until it halts or runs past its end."""
        if self.code is None:
            raise VMError("no code loaded")
        self._last_snapshot = self.snapshot()
        self.halted = False
        while not self.halted and self.pc < self.code_size:
            op = self._fetch_u8()
            handler = self._handlers.get(op)
            if handler is None:
                self.halted = True
                logger.warning("Invalid opcode %d at pc=%d", op, self.pc - 1)
                self.recover()
            else:
                handler()

    def recover(self) -> None:
        """Roll back to the last snapshot and rerun, isolating the VM after repeated faults."""
        logger.warning("Fault detected, attempting recovery")
        if self.recovery_count < MAX_RECOVERIES:
            logger.info("Rolling back to last snapshot")
            self.restore(self._last_snapshot)
            self.recovery_count += 1
            self.halted = False
            self.run()
        else:
            logger.error("Recovery failed after %d attempts, isolating VM", MAX_RECOVERIES)
            self.quarantined = True
            self.halted = True

    def _fetch_u8(self) -> int:
        assert self.code is not None
        if self.pc >= len(self.code):
            raise VMError(f"truncated instruction at pc={self.pc}")
        value = self.code[self.pc]
        self.pc += 1
        return value

    def _peek_u32(self) -> int:
        assert self.code is not None
        if self.pc + 4 > len(self.code):
            raise VMError(f"truncated operand at pc={self.pc}")
        return struct.unpack_from("<I", self.code, self.pc)[0]

    def _fetch_u32(self) -> int:
        value = self._peek_u32()
        self.pc += 4
        return value

    def _op_load_imm(self) -> None:
        reg = self._fetch_u8()
        imm = self._fetch_u32()
        if reg < MAX_REGS:
            self.regs[reg] = imm

    def _op_binary(self, fn: Callable[[int, int], int]) -> None:
        r0 = self._fetch_u8()
        r1 = self._fetch_u8()
        if r0 < MAX_REGS and r1 < MAX_REGS:
            self.regs[r0] = fn(self.regs[r0], self.regs[r1]) & _U32

    def _op_div(self) -> None:
        r0 = self._fetch_u8()
        r1 = self._fetch_u8()
        if r0 < MAX_REGS and r1 < MAX_REGS and self.regs[r1] != 0:
            self.regs[r0] //= self.regs[r1]

    def _op_jmp(self) -> None:
        self.pc = self._peek_u32()

    def _op_jz(self) -> None:
        reg = self._fetch_u8()
        addr = self._fetch_u32()
        if reg < MAX_REGS and self.regs[reg] == 0:
            self.pc = addr

    def _op_load(self) -> None:
        reg = self._fetch_u8()
        addr = self._fetch_u32()
        if reg < MAX_REGS and addr < MAX_STACK:
            self.regs[reg] = self.stack[addr]

    def _op_store(self) -> None:
        reg = self._fetch_u8()
        addr = self._fetch_u32()
        if reg < MAX_REGS and addr < MAX_STACK:
            self.stack[addr] = self.regs[reg]

    def _op_syscall(self) -> None:
        syscall_id = self._fetch_u8()
        arg0 = self._fetch_u32()
        self._fetch_u32()
        if syscall_id == 0:
            logger.info("Print: %d", arg0)
            self.printed.append(arg0)
        elif syscall_id == 1:
            logger.info("Exit called with code %d", arg0)
            self.exit_code = arg0
            self.halted = True
        elif syscall_id == 2:
            if arg0 < MAX_REGS:
                self.regs[arg0] = int(time.time()) & _U32
        else:
            logger.warning("Unknown syscall %d", syscall_id)

    def _op_halt(self) -> None:
        self.halted = True