"""Split one disassembled instruction into operation, destination and source"""
import logging
import re
from dataclasses import dataclass
from enum import Enum

from crashaddr.error_handling import ErrorContext, MalformedOperandsError

logger = logging.getLogger(__name__)

# A token is a run of characters that are neither whitespace nor commas, or a
# lone comma.
TOKEN_RE = re.compile(r'([^\s,]+|,)\s*')

INSTRUCTION_PREFIXES = frozenset(['lock', 'rep', 'repz', 'repnz'])
OPERAND_SIZES = frozenset(['BYTE', 'WORD', 'DWORD', 'QWORD', 'PTR'])


class Operand(Enum):
    """Which operand of an instruction to evaluate"""
    DEST = "dest"
    SRC = "src"


@dataclass(frozen=True)
class DisassembledInstruction:
    """An instruction reduced to its mnemonic and first two operands"""
    operation: str = ""
    dest: str = ""
    src: str = ""

    def __post_init__(self):
        if self.src and not self.dest:
            raise ValueError("An instruction cannot have a source operand without a destination")

    def operand(self, which: Operand) -> str:
        if which is Operand.DEST:
            return self.dest
        if which is Operand.SRC:
            return self.src
        raise ValueError(f"Expected an Operand, got {which!r}")

    def __str__(self):
        text = self.operation
        if self.dest:
            text += f" {self.dest}"
        if self.src:
            text += f",{self.src}"
        return text


def tokenize(instruction: str) -> DisassembledInstruction:
    """
    Tokenize objdump-style Intel syntax, e.g. ``lock cmpxchg DWORD PTR [esi+0x10],eax``.

    Instruction prefixes before the mnemonic and size keywords before each
    operand are dropped. Operand contents are not checked here, only their
    count and comma placement.

    Args:
        instruction: Mnemonic and operand list of a single instruction

    Returns:
        DisassembledInstruction

    Raises:
        MalformedOperandsError: If a comma is missing, dangling, or introduces
            a third operand
    """
    operation = ""
    dest = ""
    src = ""
    found_comma = False

    for match in TOKEN_RE.finditer(instruction):
        token = match.group(1)
        if not operation:
            if token in INSTRUCTION_PREFIXES:
                continue
            operation = token
        elif not dest:
            if token in OPERAND_SIZES:
                continue
            dest = token
        elif not found_comma:
            if token != ',':
                logger.error(f"Failed to parse operands, expected comma but found {token!r}")
                raise MalformedOperandsError(
                    f"Expected comma after first operand but found {token!r}",
                    context=ErrorContext(instruction=instruction)
                )
            found_comma = True
        elif not src:
            if token in OPERAND_SIZES:
                continue
            src = token
        elif token == ',':
            logger.error("Failed to parse operands, found unexpected comma after last operand")
            raise MalformedOperandsError(
                "Unexpected comma after second operand",
                context=ErrorContext(instruction=instruction)
            )
        # Anything else after the second operand is ignored

    if found_comma and not src:
        logger.error("Failed to parse operands, found comma but no source operand")
        raise MalformedOperandsError(
            "Comma without a following source operand",
            context=ErrorContext(instruction=instruction)
        )

    return DisassembledInstruction(operation=operation, dest=dest, src=src)
