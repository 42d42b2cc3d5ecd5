"""Tests for register and segment lookup."""

import pytest

from crashaddr.architecture import Architecture
from crashaddr.context import AMD64Context, X86Context
from crashaddr.error_handling import (
    UnsupportedArchitectureError,
    UnsupportedRegisterError,
    UnsupportedSegmentError,
)
from crashaddr.registers import (
    AMD64RegisterResolver,
    X86RegisterResolver,
    resolve_register,
    resolve_segment,
    resolver_for,
)

X86_REGISTERS = ['eax', 'ebx', 'ecx', 'edx', 'edi', 'esi', 'ebp', 'esp', 'eip']
X86_SEGMENTS = ['ds', 'es', 'fs', 'gs']
AMD64_REGISTERS = [
    'rax', 'rbx', 'rcx', 'rdx', 'rdi', 'rsi', 'rbp', 'rsp',
    'r8', 'r9', 'r10', 'r11', 'r12', 'r13', 'r14', 'r15', 'rip',
]


def _distinct_x86_context():
    names = X86_REGISTERS + X86_SEGMENTS
    return X86Context(**{name: 0x100 + i for i, name in enumerate(names)})


def _distinct_amd64_context():
    return AMD64Context(**{name: 0xdead0000 + i for i, name in enumerate(AMD64_REGISTERS)})


class TestX86:

    @pytest.mark.parametrize('name', X86_REGISTERS)
    def test_registers_read_from_context(self, name):
        context = _distinct_x86_context()
        assert resolve_register(Architecture.X86, context, name) == getattr(context, name)

    @pytest.mark.parametrize('name', X86_SEGMENTS)
    def test_segments_read_from_context(self, name):
        context = _distinct_x86_context()
        assert resolve_segment(Architecture.X86, context, name) == getattr(context, name)

    @pytest.mark.parametrize('name', ['rax', 'ax', 'al', 'r8', 'EAX', 'cs', ''])
    def test_unknown_register_fails(self, name):
        with pytest.raises(UnsupportedRegisterError) as exc_info:
            resolve_register(Architecture.X86, X86Context(), name)
        assert exc_info.value.register == name

    @pytest.mark.parametrize('name', ['cs', 'ss', 'eax'])
    def test_unknown_segment_fails(self, name):
        with pytest.raises(UnsupportedSegmentError) as exc_info:
            resolve_segment(Architecture.X86, X86Context(), name)
        assert exc_info.value.segment == name

    def test_zero_valued_register_is_not_a_default(self):
        # A register holding 0 resolves, an unknown one does not
        assert resolve_register(Architecture.X86, X86Context(), 'eax') == 0
        with pytest.raises(UnsupportedRegisterError):
            resolve_register(Architecture.X86, X86Context(), 'xmm0')


class TestAMD64:

    @pytest.mark.parametrize('name', AMD64_REGISTERS)
    def test_registers_read_from_context(self, name):
        context = _distinct_amd64_context()
        assert resolve_register(Architecture.AMD64, context, name) == getattr(context, name)

    @pytest.mark.parametrize('name', ['ds', 'es'])
    def test_flat_segments_are_zero(self, name, amd64_context):
        assert resolve_segment(Architecture.AMD64, amd64_context, name) == 0

    @pytest.mark.parametrize('name', ['fs', 'gs', 'cs', 'ss'])
    def test_uncaptured_segments_fail(self, name, amd64_context):
        with pytest.raises(UnsupportedSegmentError):
            resolve_segment(Architecture.AMD64, amd64_context, name)

    @pytest.mark.parametrize('name', ['eax', 'r8d', 'eip', 'r16'])
    def test_unknown_register_fails(self, name, amd64_context):
        with pytest.raises(UnsupportedRegisterError):
            resolve_register(Architecture.AMD64, amd64_context, name)


class TestResolverSelection:

    def test_resolver_per_architecture(self):
        assert isinstance(resolver_for(Architecture.X86), X86RegisterResolver)
        assert isinstance(resolver_for(Architecture.AMD64), AMD64RegisterResolver)

    @pytest.mark.parametrize('arch', ['x86', None, 3])
    def test_unknown_architecture_fails(self, arch):
        with pytest.raises(UnsupportedArchitectureError):
            resolver_for(arch)

    def test_context_of_other_architecture_fails(self, amd64_context, x86_context):
        with pytest.raises(UnsupportedArchitectureError):
            resolve_register(Architecture.X86, amd64_context, 'eax')
        with pytest.raises(UnsupportedArchitectureError):
            resolve_segment(Architecture.AMD64, x86_context, 'ds')

    def test_name_sets(self):
        assert X86RegisterResolver().register_names() == X86_REGISTERS
        assert X86RegisterResolver().segment_names() == X86_SEGMENTS
        assert AMD64RegisterResolver().register_names() == AMD64_REGISTERS
        assert AMD64RegisterResolver().segment_names() == ['ds', 'es']
