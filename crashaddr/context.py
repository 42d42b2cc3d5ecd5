"""
Captured CPU register state for x86 and x86-64 crash contexts.

Contexts are frozen snapshots; the address evaluator only reads from them.
"""
from dataclasses import dataclass, fields
from typing import Dict

from crashaddr.architecture import Architecture
from crashaddr.error_handling import UnsupportedArchitectureError

try:
    from unicorn.x86_const import (
        UC_X86_REG_EAX, UC_X86_REG_EBX, UC_X86_REG_ECX, UC_X86_REG_EDX,
        UC_X86_REG_EDI, UC_X86_REG_ESI, UC_X86_REG_EBP, UC_X86_REG_ESP,
        UC_X86_REG_EIP, UC_X86_REG_DS, UC_X86_REG_ES, UC_X86_REG_FS,
        UC_X86_REG_GS,
        UC_X86_REG_RAX, UC_X86_REG_RBX, UC_X86_REG_RCX, UC_X86_REG_RDX,
        UC_X86_REG_RDI, UC_X86_REG_RSI, UC_X86_REG_RBP, UC_X86_REG_RSP,
        UC_X86_REG_R8, UC_X86_REG_R9, UC_X86_REG_R10, UC_X86_REG_R11,
        UC_X86_REG_R12, UC_X86_REG_R13, UC_X86_REG_R14, UC_X86_REG_R15,
        UC_X86_REG_RIP,
    )
    UNICORN_AVAILABLE = True
except ImportError:
    UNICORN_AVAILABLE = False


class CpuContext:
    """Base class for architecture-tagged register snapshots"""

    architecture: Architecture

    def registers(self) -> Dict[str, int]:
        """Return every captured register as a name -> value mapping"""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class X86Context(CpuContext):
    """32-bit x86 register snapshot"""
    eax: int = 0
    ebx: int = 0
    ecx: int = 0
    edx: int = 0
    edi: int = 0
    esi: int = 0
    ebp: int = 0
    esp: int = 0
    eip: int = 0
    ds: int = 0
    es: int = 0
    fs: int = 0
    gs: int = 0

    @property
    def architecture(self) -> Architecture:
        return Architecture.X86


@dataclass(frozen=True)
class AMD64Context(CpuContext):
    """x86-64 register snapshot (segment registers are not captured)"""
    rax: int = 0
    rbx: int = 0
    rcx: int = 0
    rdx: int = 0
    rdi: int = 0
    rsi: int = 0
    rbp: int = 0
    rsp: int = 0
    r8: int = 0
    r9: int = 0
    r10: int = 0
    r11: int = 0
    r12: int = 0
    r13: int = 0
    r14: int = 0
    r15: int = 0
    rip: int = 0

    @property
    def architecture(self) -> Architecture:
        return Architecture.AMD64


def make_context(arch: Architecture, **registers: int) -> CpuContext:
    """
    Build a context for ``arch`` from keyword register values.

    Args:
        arch: Target architecture
        **registers: Register values by name; unknown names raise TypeError

    Returns:
        X86Context or AMD64Context
    """
    if arch is Architecture.X86:
        return X86Context(**registers)
    if arch is Architecture.AMD64:
        return AMD64Context(**registers)
    raise UnsupportedArchitectureError(f"Unsupported architecture: {arch!r}")


if UNICORN_AVAILABLE:
    _UNICORN_X86_REGISTERS = {
        'eax': UC_X86_REG_EAX,
        'ebx': UC_X86_REG_EBX,
        'ecx': UC_X86_REG_ECX,
        'edx': UC_X86_REG_EDX,
        'edi': UC_X86_REG_EDI,
        'esi': UC_X86_REG_ESI,
        'ebp': UC_X86_REG_EBP,
        'esp': UC_X86_REG_ESP,
        'eip': UC_X86_REG_EIP,
        'ds': UC_X86_REG_DS,
        'es': UC_X86_REG_ES,
        'fs': UC_X86_REG_FS,
        'gs': UC_X86_REG_GS,
    }

    _UNICORN_AMD64_REGISTERS = {
        'rax': UC_X86_REG_RAX,
        'rbx': UC_X86_REG_RBX,
        'rcx': UC_X86_REG_RCX,
        'rdx': UC_X86_REG_RDX,
        'rdi': UC_X86_REG_RDI,
        'rsi': UC_X86_REG_RSI,
        'rbp': UC_X86_REG_RBP,
        'rsp': UC_X86_REG_RSP,
        'r8': UC_X86_REG_R8,
        'r9': UC_X86_REG_R9,
        'r10': UC_X86_REG_R10,
        'r11': UC_X86_REG_R11,
        'r12': UC_X86_REG_R12,
        'r13': UC_X86_REG_R13,
        'r14': UC_X86_REG_R14,
        'r15': UC_X86_REG_R15,
        'rip': UC_X86_REG_RIP,
    }


def context_from_unicorn(uc, arch: Architecture) -> CpuContext:
    """
    Capture the register state of a stopped Unicorn engine.

    Useful after an emulated fault: the engine halts on the faulting
    instruction with the registers as they were when it was attempted.

    Args:
        uc: unicorn.Uc instance in UC_MODE_32 or UC_MODE_64
        arch: Architecture the engine was created for

    Returns:
        Frozen CpuContext

    Raises:
        ImportError: If Unicorn is not installed
    """
    if not UNICORN_AVAILABLE:
        raise ImportError("Unicorn engine not installed. Run: pip install unicorn")

    if arch is Architecture.X86:
        table = _UNICORN_X86_REGISTERS
    elif arch is Architecture.AMD64:
        table = _UNICORN_AMD64_REGISTERS
    else:
        raise UnsupportedArchitectureError(f"Unsupported architecture: {arch!r}")

    values = {name: uc.reg_read(reg_id) for name, reg_id in table.items()}
    return make_context(arch, **values)
