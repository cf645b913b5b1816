import struct

import pytest

from neonova.vm import VM, Opcode
from neonova.x86_64 import JitError, compile_x86_64, emit_x86_64

PROLOGUE = bytes([0x55, 0x48, 0x89, 0xE5, 0x48, 0x81, 0xEC, 0x00, 0x04, 0x00, 0x00])
EPILOGUE = bytes([0x48, 0x89, 0x45, 0xF8, 0xC9, 0xC3])


def imm(reg, value):
    return bytes([Opcode.LOAD_IMM, reg]) + struct.pack("<I", value)


def binop(op, r0, r1):
    return bytes([op, r0, r1])


def halt():
    return bytes([Opcode.HALT])


def jit(code):
    vm = VM(code)
    compile_x86_64(vm)
    return vm


def interpret(code):
    vm = VM(code)
    vm.run()
    return vm


def test_prologue_and_epilogue():
    out = emit_x86_64(halt())
    assert out == PROLOGUE + EPILOGUE


def test_nop_emits_nop_byte():
    out = emit_x86_64(bytes([Opcode.NOP]) + halt())
    assert out == PROLOGUE + b"\x90" + EPILOGUE


def test_load_imm_mapped_register():
    out = emit_x86_64(imm(0, 0x01020304) + halt())
    assert out[len(PROLOGUE)] == 0xB8
    assert out[len(PROLOGUE) + 1:len(PROLOGUE) + 5] == struct.pack("<I", 0x01020304)


def test_load_imm_frame_register():
    out = emit_x86_64(imm(5, 77))
    assert out[len(PROLOGUE):] == b"\xc7\x85" + struct.pack("<i", -8 * 5) + struct.pack("<I", 77)


def test_empty_code_raises():
    with pytest.raises(JitError):
        emit_x86_64(b"")


def test_unsupported_opcode_raises():
    with pytest.raises(JitError):
        emit_x86_64(bytes([0xFF]))


def test_truncated_bytecode_raises():
    with pytest.raises(JitError):
        emit_x86_64(bytes([Opcode.LOAD_IMM, 0, 1]))


def test_jump_cycle_raises():
    with pytest.raises(JitError):
        emit_x86_64(bytes([Opcode.JMP]) + struct.pack("<I", 0))


def test_compile_load_imm_result():
    vm = jit(imm(0, 9876) + halt())
    assert vm.regs[0] == 9876


@pytest.mark.parametrize("op", [Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.DIV])
def test_mapped_registers_match_interpreter(op):
    code = imm(0, 900) + imm(1, 7) + binop(op, 0, 1) + halt()
    assert jit(code).regs[0] == interpret(code).regs[0]


def test_frame_registers_match_interpreter():
    code = imm(5, 1500) + imm(6, 250) + binop(Opcode.ADD, 5, 6) + halt()
    assert jit(code).regs[0] == interpret(code).regs[5]


def test_frame_division_matches_interpreter():
    code = imm(5, 1500) + imm(6, 250) + binop(Opcode.DIV, 5, 6) + halt()
    assert jit(code).regs[0] == interpret(code).regs[5]


def test_division_by_zero_faults():
    with pytest.raises(JitError):
        jit(imm(0, 10) + binop(Opcode.DIV, 0, 1) + halt())


def test_division_by_rdx_faults():
    with pytest.raises(JitError):
        jit(imm(0, 10) + imm(3, 2) + binop(Opcode.DIV, 0, 3) + halt())


def test_missing_halt_faults():
    with pytest.raises(JitError):
        jit(imm(0, 1))


def test_compile_without_code_raises():
    with pytest.raises(JitError):
        compile_x86_64(VM(None))