"""Shared fixtures for crashaddr tests."""

import pytest

from crashaddr.architecture import Architecture
from crashaddr.context import AMD64Context, X86Context
from crashaddr.disassembler import DisassemblyService
from crashaddr.error_handling import DisassemblyUnavailableError


class CannedDisassembler(DisassemblyService):
    """Disassembly service returning fixed text, recording what it was asked."""

    def __init__(self, text=None):
        super().__init__()
        self.text = text
        self.calls = []

    def _disassemble(self, arch, window):
        self.calls.append((arch, window))
        if self.text is None:
            raise DisassemblyUnavailableError("canned failure")
        return self.text


@pytest.fixture
def canned():
    return CannedDisassembler


@pytest.fixture
def x86_context():
    return X86Context(
        eax=0x11, ebx=0x22, ecx=0x33, edx=0x44,
        edi=0x10, esi=0x1000, ebp=0x7ff0, esp=0x7fe0, eip=0x401000,
        ds=0x0, es=0x0, fs=0x2000, gs=0x3000,
    )


@pytest.fixture
def amd64_context():
    return AMD64Context(
        rax=0x1, rbx=0x7f0000001000, rcx=0x2, rdx=0x4,
        rdi=0x5, rsi=0x6, rbp=0x7ffc0000, rsp=0x7ffb0000,
        r8=0x8, r9=0x9, r10=0xa, r11=0xb, r12=0xc, r13=0xd, r14=0xe, r15=0xf,
        rip=0x400000,
    )


@pytest.fixture(params=[Architecture.X86, Architecture.AMD64], ids=['x86', 'amd64'])
def any_arch(request):
    return request.param
