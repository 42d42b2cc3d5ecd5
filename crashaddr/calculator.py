"""
Recover the memory address a faulting instruction was accessing.

``AddressCalculator`` decodes the instruction at a crash address once, then
evaluates its source or destination operand against a captured CPU context::

    calculator = AddressCalculator(Architecture.X86, region, context.eip)
    address = calculator.calculate_src_address(context)

Construction never raises. When the instruction cannot be decoded (address
outside the region, no disassembly, malformed operands) the calculator is
inert and every calculation re-raises the recorded failure.
"""
import logging
from enum import Enum
from typing import Optional

from crashaddr.architecture import Architecture, require_architecture
from crashaddr.context import CpuContext
from crashaddr.disassembler import DisassemblyService, create_disassembler
from crashaddr.error_handling import (
    CrashAddrError,
    ErrorContext,
    UnsupportedArchitectureError,
    handle_gracefully,
)
from crashaddr.expression import evaluate
from crashaddr.memory import MemoryRegion, read_window
from crashaddr.tokenizer import DisassembledInstruction, Operand, tokenize

logger = logging.getLogger(__name__)


class CalculatorState(Enum):
    """Whether an instruction was decoded for the calculator"""
    INERT = "inert"
    DECODED = "decoded"


def _check_context(arch: Architecture, context: CpuContext):
    if getattr(context, 'architecture', None) is not arch:
        raise UnsupportedArchitectureError(
            f"Context architecture {getattr(context, 'architecture', None)!r} "
            f"does not match {arch.value}",
            context=ErrorContext(architecture=arch.value)
        )


def calculate_address(arch: Architecture, context: CpuContext, raw_bytes: bytes,
                      which_operand: Operand,
                      disassembler: Optional[DisassemblyService] = None) -> int:
    """
    Disassemble ``raw_bytes`` and evaluate one of its operands.

    Args:
        arch: Architecture of the code and context
        context: Registers at the time of the crash
        raw_bytes: Bytes at the instruction pointer (at most 15 are used)
        which_operand: Operand.DEST or Operand.SRC
        disassembler: Disassembly service; defaults to create_disassembler()

    Returns:
        64-bit address referenced by the operand

    Raises:
        CrashAddrError: The first failure of any stage
    """
    require_architecture(arch)
    _check_context(arch, context)
    if disassembler is None:
        disassembler = create_disassembler()

    instruction = tokenize(disassembler.disassemble(arch, raw_bytes))
    return evaluate(arch, context, instruction.operand(which_operand))


class AddressCalculator:
    """Decodes the instruction at ``address`` and evaluates its memory operands"""

    def __init__(self, arch: Architecture, memory_region: MemoryRegion, address: int,
                 disassembler: Optional[DisassemblyService] = None):
        """
        Args:
            arch: Architecture of the crashed process
            memory_region: Captured memory containing the instruction
            address: Instruction pointer of the faulting instruction
            disassembler: Disassembly service; defaults to create_disassembler()
        """
        self.arch = arch
        self.address = address
        self._instruction: Optional[DisassembledInstruction] = None
        self._error: Optional[CrashAddrError] = None

        try:
            require_architecture(arch)
            if disassembler is None:
                disassembler = create_disassembler()
            window = read_window(memory_region, address, arch.max_instruction_length)
            text = disassembler.disassemble(arch, window)
            self._instruction = tokenize(text)
            logger.debug(f"Decoded instruction at {address:#x}: {self._instruction}")
        except CrashAddrError as e:
            self._error = e
            logger.debug(f"No instruction available at {address:#x}: {e}")

    @property
    def state(self) -> CalculatorState:
        return CalculatorState.DECODED if self._instruction is not None else CalculatorState.INERT

    @property
    def instruction(self) -> Optional[DisassembledInstruction]:
        return self._instruction

    @property
    def error(self) -> Optional[CrashAddrError]:
        """The failure that made this calculator inert, if any"""
        return self._error

    def calculate_address(self, context: CpuContext, which: Operand) -> int:
        """
        Evaluate the requested operand against ``context``.

        Raises:
            CrashAddrError: The recorded decode failure if inert, otherwise
                the evaluation failure (NotAMemoryOperandError for register or
                immediate operands)
        """
        if self._instruction is None:
            raise self._error
        _check_context(self.arch, context)
        return evaluate(self.arch, context, self._instruction.operand(which))

    def calculate_src_address(self, context: CpuContext) -> int:
        return self.calculate_address(context, Operand.SRC)

    def calculate_dest_address(self, context: CpuContext) -> int:
        return self.calculate_address(context, Operand.DEST)

    @handle_gracefully
    def try_calculate_src_address(self, context: CpuContext) -> Optional[int]:
        """Like calculate_src_address, but returns None on any failure"""
        return self.calculate_src_address(context)

    @handle_gracefully
    def try_calculate_dest_address(self, context: CpuContext) -> Optional[int]:
        """Like calculate_dest_address, but returns None on any failure"""
        return self.calculate_dest_address(context)

    def __repr__(self):
        return (f"AddressCalculator(arch={self.arch!r}, address={self.address:#x}, "
                f"state={self.state.value})")
