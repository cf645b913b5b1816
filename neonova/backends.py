"""Compilation backends for the bytecode VM and selection by target architecture."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import Callable

from .vm import MAX_REGS, VM, Arch, Opcode
from .x86_64 import JitError, compile_x86_64

logger = logging.getLogger(__name__)

_U32 = 0xFFFFFFFF

_BINARY_OPS: dict[int, Callable[[int, int], int]] = {
    Opcode.ADD: lambda a, b: a + b,
    Opcode.SUB: lambda a, b: a - b,
    Opcode.MUL: lambda a, b: a * b,
}


@dataclass
class JitBackend:
    """A named code generator for one target architecture."""

    name: str
    tag: str
    compile: Callable[[VM], None]
    initialized: bool = field(default=False, compare=False)
    init_count: int = field(default=0, compare=False)

    def init(self) -> int:
        """Prepare the backend for use and return how many times it has been prepared."""
        self.initialized = True
        self.init_count += 1
        logger.info("[%s] Initialized", self.tag)
        return self.init_count


def interpret_subset(vm: VM, tag: str) -> None:
    """Execute the arithmetic subset of the instruction set directly on the VM's registers.

    Execution starts at the beginning of the program and stops at HALT, at the
    end of the code, or at the first unsupported opcode, which halts the VM.
    """
    code = vm.code
    if not code or vm.code_size == 0:
        raise JitError("no bytecode to compile")
    size = min(vm.code_size, len(code))
    pc = 0

    def u8() -> int:
        nonlocal pc
        if pc >= len(code):
            raise JitError(f"truncated bytecode at pc={pc}")
        value = code[pc]
        pc += 1
        return value

    def u32() -> int:
        nonlocal pc
        if pc + 4 > len(code):
            raise JitError(f"truncated operand at pc={pc}")
        value = struct.unpack_from("<I", code, pc)[0]
        pc += 4
        return value

    while pc < size and not vm.halted:
        op = u8()
        if op == Opcode.NOP:
            continue
        if op == Opcode.LOAD_IMM:
            reg = u8()
            imm = u32()
            if reg < MAX_REGS:
                vm.regs[reg] = imm
        elif op in _BINARY_OPS:
            reg, reg2 = u8(), u8()
            if reg < MAX_REGS and reg2 < MAX_REGS:
                vm.regs[reg] = _BINARY_OPS[op](vm.regs[reg], vm.regs[reg2]) & _U32
        elif op == Opcode.DIV:
            reg, reg2 = u8(), u8()
            if reg < MAX_REGS and reg2 < MAX_REGS and vm.regs[reg2] != 0:
                vm.regs[reg] //= vm.regs[reg2]
        elif op == Opcode.HALT:
            vm.halted = True
        else:
            logger.warning("[%s] Unsupported opcode %d", tag, op)
            vm.halted = True


def _subset_backend(name: str, tag: str) -> JitBackend:
    return JitBackend(name=name, tag=tag, compile=lambda vm: interpret_subset(vm, tag))


_BACKENDS: dict[Arch, JitBackend] = {
    Arch.X86_64: JitBackend(name="x86_64", tag="JIT-x86_64", compile=compile_x86_64),
    Arch.ARM: _subset_backend("ARM", "JIT-ARM"),
    Arch.RISCV: _subset_backend("RISC-V", "JIT-RISC-V"),
    Arch.PHOTONIC: _subset_backend("Photonic", "JIT-Photonic"),
}


def select_backend(arch: Arch | int) -> JitBackend:
    """Return the backend for an architecture, raising JitError if there is none."""
    try:
        backend = _BACKENDS[Arch(arch)]
    except (ValueError, KeyError):
        logger.warning("Unknown architecture %r, no backend selected", arch)
        raise JitError(f"no backend for architecture {arch!r}") from None
    logger.info("Selected %s backend", backend.name)
    return backend


def compile_vm(vm: VM, arch: Arch | int) -> None:
    """Compile and run the VM's program with the backend for the given architecture."""
    backend = select_backend(arch)
    backend.init()
    backend.compile(vm)