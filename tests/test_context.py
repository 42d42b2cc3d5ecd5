"""Tests for CPU contexts, including capture from a Unicorn engine."""

import dataclasses

import pytest

from crashaddr.architecture import Architecture
from crashaddr.context import AMD64Context, X86Context, context_from_unicorn, make_context
from crashaddr.error_handling import UnsupportedArchitectureError


def test_architecture_tags():
    assert X86Context().architecture is Architecture.X86
    assert AMD64Context().architecture is Architecture.AMD64


def test_contexts_are_immutable():
    context = X86Context(eax=1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        context.eax = 2


def test_registers_mapping():
    registers = AMD64Context(r15=0x15).registers()
    assert registers['r15'] == 0x15
    assert len(registers) == 17
    assert 'fs' not in registers


def test_make_context():
    assert make_context(Architecture.X86, esi=4) == X86Context(esi=4)
    assert make_context(Architecture.AMD64, rsi=4) == AMD64Context(rsi=4)


def test_make_context_unknown_register():
    with pytest.raises(TypeError):
        make_context(Architecture.X86, rax=1)


def test_make_context_unknown_architecture():
    with pytest.raises(UnsupportedArchitectureError):
        make_context("mips", eax=1)


class TestUnicornCapture:

    @pytest.fixture
    def unicorn(self):
        return pytest.importorskip('unicorn')

    def _run_until_fault(self, uc, code, base=0x400000):
        from unicorn import UcError, UC_HOOK_MEM_READ_UNMAPPED

        faults = []

        def hook(uc, access, address, size, value, user_data):
            faults.append(address)
            return False

        uc.mem_map(base, 0x1000)
        uc.mem_write(base, code)
        uc.hook_add(UC_HOOK_MEM_READ_UNMAPPED, hook)
        with pytest.raises(UcError):
            uc.emu_start(base, base + len(code))
        return faults

    def test_x86_fault_address_matches_evaluation(self, unicorn):
        from unicorn.x86_const import UC_X86_REG_ESI
        from crashaddr.expression import evaluate

        uc = unicorn.Uc(unicorn.UC_ARCH_X86, unicorn.UC_MODE_32)
        uc.reg_write(UC_X86_REG_ESI, 0xdead0000)
        faults = self._run_until_fault(uc, bytes.fromhex('8b4610'))  # mov eax,[esi+0x10]

        context = context_from_unicorn(uc, Architecture.X86)

        assert isinstance(context, X86Context)
        assert context.esi == 0xdead0000
        assert evaluate(Architecture.X86, context, "[esi+0x10]") == faults[0] == 0xdead0010

    def test_amd64_fault_address_matches_evaluation(self, unicorn):
        from unicorn.x86_const import UC_X86_REG_RBX, UC_X86_REG_RCX
        from crashaddr.expression import evaluate

        uc = unicorn.Uc(unicorn.UC_ARCH_X86, unicorn.UC_MODE_64)
        uc.reg_write(UC_X86_REG_RBX, 0x7f0000001000)
        uc.reg_write(UC_X86_REG_RCX, 2)
        faults = self._run_until_fault(uc, bytes.fromhex('488b44cbf0'))  # mov rax,[rbx+rcx*8-0x10]

        context = context_from_unicorn(uc, Architecture.AMD64)

        assert isinstance(context, AMD64Context)
        assert evaluate(Architecture.AMD64, context, "[rbx+rcx*8-0x10]") == faults[0]
        assert faults[0] == 0x7f0000001000

    def test_unknown_architecture(self, unicorn):
        uc = unicorn.Uc(unicorn.UC_ARCH_X86, unicorn.UC_MODE_32)
        with pytest.raises(UnsupportedArchitectureError):
            context_from_unicorn(uc, "arm")
