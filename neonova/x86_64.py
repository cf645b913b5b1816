"""x86-64 code generation for VM bytecode and an execution model for the emitted code."""

from __future__ import annotations

import logging
import struct

from .vm import VM, Opcode

logger = logging.getLogger(__name__)

MAX_JIT_CODE_SIZE = 4096

_U32 = 0xFFFFFFFF
_M64 = (1 << 64) - 1

_PROLOGUE = bytes([0x55, 0x48, 0x89, 0xE5, 0x48, 0x81, 0xEC, 0x00, 0x04, 0x00, 0x00])
_EPILOGUE = bytes([0x48, 0x89, 0x45, 0xF8, 0xC9, 0xC3])

# VM registers 0..3 live in rax, rbx, rcx, rdx; the rest in the frame.
_MOV_IMM = {0: 0xB8, 1: 0xBB, 2: 0xB9, 3: 0xBA}
_ADD_SUB_MODRM = {
    (0, 1): 0xD8, (0, 2): 0xC8, (1, 0): 0xD3, (1, 2): 0xCB, (2, 0): 0xC1,
    (2, 1): 0xD1, (3, 0): 0xC2, (3, 1): 0xCA, (3, 2): 0xD2,
}
_IMUL_MODRM = {
    (0, 1): 0xC3, (0, 2): 0xC1, (1, 0): 0xD8, (1, 2): 0xD9, (2, 0): 0xCA,
    (2, 1): 0xCB, (3, 0): 0xD2, (3, 1): 0xD3, (3, 2): 0xD1,
}
_FALLBACK_MODRM = 0xC0
_MOV_RAX_FROM = {0: 0xC0, 1: 0xD8, 2: 0xC8, 3: 0xD0}
_DIV_MODRM = {1: 0xF3, 2: 0xF1, 3: 0xF2}
_ARITH_FORMS = {
    Opcode.ADD: (b"\x48\x01", b"\x48\x03"),
    Opcode.SUB: (b"\x48\x29", b"\x48\x2b"),
    Opcode.MUL: (b"\x48\x0f\xaf", b"\x48\x0f\xaf"),
}

_RAX, _RCX, _RDX, _RBX, _RSP, _RBP = range(6)
_STACK_BYTES = 0x4000
_RETURN_ADDRESS = 0xFFFF_FFFF_FFFF_0000


class JitError(Exception):
    """Raised when bytecode cannot be compiled or the compiled code faults."""


class _Reader:
    def __init__(self, code: bytes):
        self.code = code
        self.pc = 0

    def u8(self) -> int:
        if self.pc >= len(self.code):
            raise JitError(f"truncated bytecode at pc={self.pc}")
        value = self.code[self.pc]
        self.pc += 1
        return value

    def raw32(self) -> bytes:
        if self.pc + 4 > len(self.code):
            raise JitError(f"truncated operand at pc={self.pc}")
        raw = self.code[self.pc:self.pc + 4]
        self.pc += 4
        return raw

    def u32(self) -> int:
        return struct.unpack("<I", self.raw32())[0]


def _frame(reg: int) -> bytes:
    return struct.pack("<i", -8 * reg)


def _arith(op: Opcode, reg: int, reg2: int) -> bytes:
    reg_form, mem_form = _ARITH_FORMS[op]
    if reg < 4 and reg2 < 4:
        table = _IMUL_MODRM if op == Opcode.MUL else _ADD_SUB_MODRM
        return reg_form + bytes([table.get((reg, reg2), _FALLBACK_MODRM)])
    return (
        b"\x48\x8b\x85" + _frame(reg)
        + mem_form + b"\x85" + _frame(reg2)
        + b"\x48\x89\x85" + _frame(reg)
    )


def _div(reg: int, reg2: int) -> bytes:
    if reg < 4 and reg2 < 4:
        return bytes([
            0x48, 0x89, _MOV_RAX_FROM[reg],
            0x48, 0x31, 0xD2,
            0x48, 0xF7, _DIV_MODRM.get(reg2, 0xF0),
        ])
    return (
        b"\x48\x8b\x85" + _frame(reg)
        + b"\x48\x31\xd2"
        + b"\x48\xf7\xb5" + _frame(reg2)
        + b"\x48\x89\x85" + _frame(reg)
    )


def emit_x86_64(code: bytes | bytearray) -> bytes:
    """Translate VM bytecode into x86-64 machine code."""
    code = bytes(code)
    if not code:
        raise JitError("no bytecode to compile")
    reader = _Reader(code)
    out = bytearray(_PROLOGUE)
    jumps_seen: set[tuple[int, int]] = set()

    def jump(addr: int) -> None:
        key = (addr, len(out))
        if key in jumps_seen:
            raise JitError(f"jump cycle at bytecode address {addr} emits no code")
        jumps_seen.add(key)
        reader.pc = addr

    while reader.pc < len(code) and len(out) < MAX_JIT_CODE_SIZE - 32:
        op = reader.u8()
        if op == Opcode.NOP:
            out.append(0x90)
        elif op == Opcode.LOAD_IMM:
            reg = reader.u8()
            imm = reader.raw32()
            if reg in _MOV_IMM:
                out.append(_MOV_IMM[reg])
                out += imm
            else:
                out += b"\xc7\x85" + _frame(reg) + imm
        elif op in (Opcode.ADD, Opcode.SUB, Opcode.MUL):
            reg, reg2 = reader.u8(), reader.u8()
            out += _arith(Opcode(op), reg, reg2)
        elif op == Opcode.DIV:
            reg, reg2 = reader.u8(), reader.u8()
            out += _div(reg, reg2)
        elif op == Opcode.JMP:
            jump(reader.u32())
        elif op == Opcode.JZ:
            reader.u8()
            jump(reader.u32())
        elif op in (Opcode.LOAD, Opcode.STORE):
            reader.u8()
            reader.u32()
        elif op == Opcode.SYSCALL:
            syscall_id = reader.u8()
            arg0 = reader.u32()
            arg1 = reader.u32()
            logger.info("SYSCALL %d, arg0=%d, arg1=%d", syscall_id, arg0, arg1)
        elif op == Opcode.HALT:
            out += _EPILOGUE
            break
        else:
            raise JitError(f"unsupported opcode {op}")
    return bytes(out)


class _Machine:
    """Executes the subset of x86-64 that the code generator emits."""

    def __init__(self, code: bytes):
        self.code = code
        self.ip = 0
        self.regs = [0] * 8
        self.mem = bytearray(_STACK_BYTES)
        self.regs[_RSP] = _STACK_BYTES
        self.finished = False
        self._push(_RETURN_ADDRESS)

    def execute(self) -> int:
        while not self.finished:
            self._step()
        return self.regs[_RAX]

    def _fetch(self, size: int) -> bytes:
        if self.ip + size > len(self.code):
            raise JitError("execution ran past the end of the generated code")
        raw = self.code[self.ip:self.ip + size]
        self.ip += size
        return raw

    def _u8(self) -> int:
        return self._fetch(1)[0]

    def _i8(self) -> int:
        return struct.unpack("<b", self._fetch(1))[0]

    def _i32(self) -> int:
        return struct.unpack("<i", self._fetch(4))[0]

    def _u32(self) -> int:
        return struct.unpack("<I", self._fetch(4))[0]

    def _check(self, addr: int, size: int) -> None:
        if addr < 0 or addr + size > len(self.mem):
            raise JitError("memory access outside the JIT stack")

    def _read64(self, addr: int) -> int:
        self._check(addr, 8)
        return int.from_bytes(self.mem[addr:addr + 8], "little")

    def _write(self, addr: int, value: int, size: int) -> None:
        self._check(addr, size)
        self.mem[addr:addr + size] = (value & ((1 << (8 * size)) - 1)).to_bytes(size, "little")

    def _push(self, value: int) -> None:
        self.regs[_RSP] -= 8
        self._write(self.regs[_RSP], value, 8)

    def _pop(self) -> int:
        value = self._read64(self.regs[_RSP])
        self.regs[_RSP] += 8
        return value

    def _modrm(self) -> tuple[int, tuple[str, int]]:
        byte = self._u8()
        mod, reg, rm = byte >> 6, (byte >> 3) & 7, byte & 7
        if mod == 3:
            return reg, ("r", rm)
        if rm == 4 or mod == 0:
            raise JitError(f"unsupported addressing form {byte:#04x}")
        disp = self._i8() if mod == 1 else self._i32()
        return reg, ("m", (self.regs[rm] + disp) & _M64)

    def _get(self, operand: tuple[str, int]) -> int:
        kind, where = operand
        return self.regs[where] if kind == "r" else self._read64(where)

    def _set(self, operand: tuple[str, int], value: int) -> None:
        kind, where = operand
        if kind == "r":
            self.regs[where] = value & _M64
        else:
            self._write(where, value, 8)

    def _step(self) -> None:
        op = self._u8()
        if op == 0x90:
            return
        if op == 0x55:
            self._push(self.regs[_RBP])
        elif 0xB8 <= op <= 0xBF:
            self.regs[op - 0xB8] = self._u32()
        elif op == 0xC7:
            reg, dst = self._modrm()
            if reg != 0:
                raise JitError("unsupported instruction group for 0xC7")
            imm = self._u32()
            if dst[0] == "r":
                self.regs[dst[1]] = imm
            else:
                self._write(dst[1], imm, 4)
        elif op == 0xC9:
            self.regs[_RSP] = self.regs[_RBP]
            self.regs[_RBP] = self._pop()
        elif op == 0xC3:
            if self._pop() != _RETURN_ADDRESS:
                raise JitError("return to an unknown address")
            self.finished = True
        elif op == 0x48:
            self._step_wide()
        else:
            raise JitError(f"unsupported instruction byte {op:#04x}")

    def _step_wide(self) -> None:
        op = self._u8()
        if op in (0x01, 0x29, 0x31):
            reg, dst = self._modrm()
            a, b = self._get(dst), self.regs[reg]
            result = {0x01: a + b, 0x29: a - b, 0x31: a ^ b}[op]
            self._set(dst, result)
        elif op in (0x03, 0x2B, 0x8B):
            reg, src = self._modrm()
            a, b = self.regs[reg], self._get(src)
            result = {0x03: a + b, 0x2B: a - b, 0x8B: b}[op]
            self.regs[reg] = result & _M64
        elif op == 0x89:
            reg, dst = self._modrm()
            self._set(dst, self.regs[reg])
        elif op == 0x0F:
            if self._u8() != 0xAF:
                raise JitError("unsupported two-byte instruction")
            reg, src = self._modrm()
            self.regs[reg] = (self.regs[reg] * self._get(src)) & _M64
        elif op == 0x81:
            reg, dst = self._modrm()
            imm = self._i32()
            if reg == 5:
                self._set(dst, self._get(dst) - imm)
            elif reg == 0:
                self._set(dst, self._get(dst) + imm)
            else:
                raise JitError("unsupported instruction group for 0x81")
        elif op == 0xF7:
            reg, src = self._modrm()
            if reg != 6:
                raise JitError("unsupported instruction group for 0xF7")
            divisor = self._get(src)
            if divisor == 0:
                raise JitError("division fault during JIT execution")
            quotient, remainder = divmod((self.regs[_RDX] << 64) | self.regs[_RAX], divisor)
            if quotient > _M64:
                raise JitError("division overflow during JIT execution")
            self.regs[_RAX] = quotient
            self.regs[_RDX] = remainder
        else:
            raise JitError(f"unsupported instruction 0x48 {op:#04x}")


def compile_x86_64(vm: VM) -> None:
    """Compile the VM's bytecode, execute it and store the result in register 0."""
    if vm.code is None:
        raise JitError("no bytecode to compile")
    machine_code = emit_x86_64(vm.code)
    result = _Machine(machine_code).execute()
    vm.regs[0] = result & _U32
    logger.info("JIT execution complete")