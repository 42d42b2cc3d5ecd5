"""Faulting memory address recovery for x86 and x86-64 crash snapshots"""

from .__version__ import __version__
from .architecture import Architecture
from .calculator import AddressCalculator, CalculatorState, calculate_address
from .config import DisassemblerConfig
from .context import AMD64Context, CpuContext, X86Context, context_from_unicorn, make_context
from .disassembler import (
    CapstoneDisassemblyService,
    DisassemblyService,
    ObjdumpDisassemblyService,
    create_disassembler,
)
from .error_handling import (
    ConfigurationError,
    CrashAddrError,
    DisassemblyUnavailableError,
    MalformedOperandsError,
    NotAMemoryOperandError,
    OutOfRangeError,
    UnsupportedArchitectureError,
    UnsupportedRegisterError,
    UnsupportedSegmentError,
)
from .expression import MemoryOperandExpression, evaluate, parse_memory_operand
from .memory import BytesMemoryRegion, MemoryRegion
from .registers import resolve_register, resolve_segment, resolver_for
from .tokenizer import DisassembledInstruction, Operand, tokenize

__all__ = [
    '__version__',
    'Architecture',
    'AddressCalculator', 'CalculatorState', 'calculate_address',
    'DisassemblerConfig',
    'AMD64Context', 'CpuContext', 'X86Context', 'context_from_unicorn', 'make_context',
    'CapstoneDisassemblyService', 'DisassemblyService', 'ObjdumpDisassemblyService',
    'create_disassembler',
    'ConfigurationError', 'CrashAddrError', 'DisassemblyUnavailableError',
    'MalformedOperandsError', 'NotAMemoryOperandError', 'OutOfRangeError',
    'UnsupportedArchitectureError', 'UnsupportedRegisterError', 'UnsupportedSegmentError',
    'MemoryOperandExpression', 'evaluate', 'parse_memory_operand',
    'BytesMemoryRegion', 'MemoryRegion',
    'resolve_register', 'resolve_segment', 'resolver_for',
    'DisassembledInstruction', 'Operand', 'tokenize',
]
