"""
Register and segment lookup for captured CPU contexts.

Each architecture has a resolver with a fixed table of the names it can
answer for. A name missing from the table is an error, never a zero.
"""
import logging
from abc import ABC
from operator import attrgetter
from typing import Callable, Dict, List

from crashaddr.architecture import Architecture
from crashaddr.context import CpuContext
from crashaddr.error_handling import (
    ErrorContext,
    UnsupportedArchitectureError,
    UnsupportedRegisterError,
    UnsupportedSegmentError,
)

logger = logging.getLogger(__name__)

Accessor = Callable[[CpuContext], int]


def _constant(value: int) -> Accessor:
    return lambda context: value


class RegisterResolver(ABC):
    """
    Architecture-specific name lookup over a CpuContext.

    Subclasses only fill in ``architecture``, ``REGISTERS`` and ``SEGMENTS``.
    Only full-width registers are listed; they are all an address expression
    can contain.
    """

    architecture: Architecture
    REGISTERS: Dict[str, Accessor] = {}
    SEGMENTS: Dict[str, Accessor] = {}

    def register_names(self) -> List[str]:
        return list(self.REGISTERS)

    def segment_names(self) -> List[str]:
        return list(self.SEGMENTS)

    def _check_context(self, context: CpuContext):
        if getattr(context, 'architecture', None) is not self.architecture:
            raise UnsupportedArchitectureError(
                f"{self.architecture.value} resolver cannot read a "
                f"{getattr(context, 'architecture', type(context).__name__)} context",
                context=ErrorContext(architecture=self.architecture.value)
            )

    def register(self, context: CpuContext, name: str) -> int:
        """
        Read a general-purpose register.

        Raises:
            UnsupportedRegisterError: If ``name`` is not in REGISTERS
        """
        self._check_context(context)
        accessor = self.REGISTERS.get(name)
        if accessor is None:
            logger.error(f"Unsupported register: {name}")
            raise UnsupportedRegisterError(
                f"Unsupported {self.architecture.value} register: {name}",
                register=name,
                context=ErrorContext(architecture=self.architecture.value, operand=name)
            )
        return accessor(context)

    def segment(self, context: CpuContext, name: str) -> int:
        """
        Read the base used for a segment-prefixed access.

        Raises:
            UnsupportedSegmentError: If ``name`` is not in SEGMENTS
        """
        self._check_context(context)
        accessor = self.SEGMENTS.get(name)
        if accessor is None:
            logger.error(f"Unsupported segment register: {name}")
            raise UnsupportedSegmentError(
                f"Unsupported {self.architecture.value} segment register: {name}",
                segment=name,
                context=ErrorContext(architecture=self.architecture.value, operand=name)
            )
        return accessor(context)


class X86RegisterResolver(RegisterResolver):
    architecture = Architecture.X86

    REGISTERS = {
        name: attrgetter(name)
        for name in ('eax', 'ebx', 'ecx', 'edx', 'edi', 'esi', 'ebp', 'esp', 'eip')
    }

    SEGMENTS = {
        name: attrgetter(name)
        for name in ('ds', 'es', 'fs', 'gs')
    }


class AMD64RegisterResolver(RegisterResolver):
    """
    x86-64 lookup.

    Known limitation: ds and es are taken as 0 (flat memory model) and fs/gs
    are rejected because the captured context does not carry their bases.
    """
    architecture = Architecture.AMD64

    REGISTERS = {
        name: attrgetter(name)
        for name in (
            'rax', 'rbx', 'rcx', 'rdx', 'rdi', 'rsi', 'rbp', 'rsp',
            'r8', 'r9', 'r10', 'r11', 'r12', 'r13', 'r14', 'r15',
            'rip',
        )
    }

    SEGMENTS = {
        'ds': _constant(0),
        'es': _constant(0),
    }


_RESOLVERS: Dict[Architecture, RegisterResolver] = {
    Architecture.X86: X86RegisterResolver(),
    Architecture.AMD64: AMD64RegisterResolver(),
}


def resolver_for(arch: Architecture) -> RegisterResolver:
    """
    Get the resolver for an architecture.

    Raises:
        UnsupportedArchitectureError: If ``arch`` has no resolver
    """
    try:
        return _RESOLVERS[arch]
    except (KeyError, TypeError):
        logger.error(f"Unsupported architecture for register lookup: {arch!r}")
        raise UnsupportedArchitectureError(f"Unsupported architecture: {arch!r}")


def resolve_register(arch: Architecture, context: CpuContext, name: str) -> int:
    """Value of register ``name`` in ``context``"""
    return resolver_for(arch).register(context, name)


def resolve_segment(arch: Architecture, context: CpuContext, name: str) -> int:
    """Base of segment ``name`` in ``context``"""
    return resolver_for(arch).segment(context, name)
