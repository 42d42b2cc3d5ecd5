"""
Memory operand parsing and evaluation.

Supported operand forms (objdump Intel syntax)::

    [base]
    [base+0x10]  [base-0x10]
    [base+index*4]
    [base+index*4+0x80]
    fs:[base+index*4-0x80]

Anything else, including bare registers and immediates, is not a memory
operand.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from crashaddr.architecture import Architecture
from crashaddr.context import CpuContext
from crashaddr.error_handling import NotAMemoryOperandError
from crashaddr.registers import resolver_for

logger = logging.getLogger(__name__)

ADDRESS_MASK = (1 << 64) - 1

_WORD_CHARS = frozenset('abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_')
_DECIMAL_DIGITS = frozenset('0123456789')
_HEX_DIGITS = frozenset('0123456789abcdefABCDEF')


@dataclass(frozen=True)
class MemoryOperandExpression:
    """
    Decomposed ``segment:[base+index*stride+offset]`` operand.

    ``index_register``/``stride`` and ``sign``/``offset`` are either both set
    or both None.
    """
    base_register: str
    segment: Optional[str] = None
    index_register: Optional[str] = None
    stride: Optional[int] = None
    sign: Optional[str] = None
    offset: Optional[int] = None

    def __str__(self):
        text = f"[{self.base_register}"
        if self.index_register is not None:
            text += f"+{self.index_register}*{self.stride}"
        if self.sign is not None:
            text += f"{self.sign}{self.offset:#x}"
        text += "]"
        if self.segment is not None:
            text = f"{self.segment}:{text}"
        return text


class _OperandParser:
    """Recursive-descent parser over a single operand string"""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def fail(self, reason: str):
        raise NotAMemoryOperandError(self.text, self.pos, reason)

    def peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ''

    def expect(self, char: str):
        if self.peek() != char:
            self.fail(f"expected {char!r}")
        self.pos += 1

    def scan(self, charset) -> str:
        start = self.pos
        while self.peek() and self.peek() in charset:
            self.pos += 1
        return self.text[start:self.pos]

    def word(self, what: str) -> str:
        word = self.scan(_WORD_CHARS)
        if not word:
            self.fail(f"expected {what}")
        return word

    def parse(self) -> MemoryOperandExpression:
        segment = self.segment_prefix()
        self.expect('[')
        base = self.word("base register")

        index = stride = None
        sign = offset = None

        if self.peek() == '+' and not self.at_offset(1):
            self.pos += 1
            index = self.word("index register")
            if self.peek() != '*':
                self.fail("index register requires a '*stride'")
            self.pos += 1
            stride = self.stride()

        if self.peek() in ('+', '-'):
            sign = self.peek()
            self.pos += 1
            offset = self.offset()

        self.expect(']')
        if self.pos != len(self.text):
            self.fail("unexpected text after ']'")

        return MemoryOperandExpression(
            base_register=base,
            segment=segment,
            index_register=index,
            stride=stride,
            sign=sign,
            offset=offset,
        )

    def segment_prefix(self) -> Optional[str]:
        if self.peek() == '[':
            return None
        segment = self.word("segment register or '['")
        self.expect(':')
        return segment

    def at_offset(self, skip: int) -> bool:
        """True if a complete hex offset starts ``skip`` characters ahead and closes the brackets"""
        probe = _OperandParser(self.text)
        probe.pos = self.pos + skip
        if probe.peek() != '0' or probe.peek(1) != 'x':
            return False
        probe.pos += 2
        return bool(probe.scan(_HEX_DIGITS)) and probe.peek() == ']'

    def stride(self) -> int:
        digits = self.scan(_DECIMAL_DIGITS)
        if not digits:
            self.fail("expected decimal stride")
        return int(digits, 10)

    def offset(self) -> int:
        if self.peek() != '0' or self.peek(1) != 'x':
            self.fail("expected '0x' offset")
        self.pos += 2
        digits = self.scan(_HEX_DIGITS)
        if not digits:
            self.fail("expected hex digits")
        return int(digits, 16)


def parse_memory_operand(text: str) -> MemoryOperandExpression:
    """
    Parse an operand string into a MemoryOperandExpression.

    Raises:
        NotAMemoryOperandError: If ``text`` does not fully match the memory
            operand grammar. The error's ``reason`` and ``position`` say where
            and why.
    """
    return _OperandParser(text).parse()


def evaluate_expression(arch: Architecture, context: CpuContext,
                        expression: MemoryOperandExpression) -> int:
    """
    Compute the address described by ``expression`` using ``context``.

    Arithmetic wraps at 64 bits like native pointer arithmetic.

    Raises:
        UnsupportedRegisterError: If the base or index register is unknown
        UnsupportedSegmentError: If the segment register is unknown
        UnsupportedArchitectureError: If ``arch`` has no resolver
    """
    resolver = resolver_for(arch)

    segment_value = 0
    if expression.segment is not None:
        segment_value = resolver.segment(context, expression.segment)

    base_value = resolver.register(context, expression.base_register)

    index_value = 0
    stride_value = 1
    if expression.index_register is not None:
        index_value = resolver.register(context, expression.index_register)
        stride_value = expression.stride

    address = segment_value + base_value + index_value * stride_value
    if expression.sign == '+':
        address += expression.offset
    elif expression.sign == '-':
        address -= expression.offset

    return address & ADDRESS_MASK


def evaluate(arch: Architecture, context: CpuContext, operand_text: str) -> int:
    """
    Parse ``operand_text`` and evaluate it against ``context``.

    Args:
        arch: Architecture of the context
        context: Captured register state
        operand_text: Operand as produced by the tokenizer (e.g. "fs:[esi+0x10]")

    Returns:
        64-bit address

    Raises:
        NotAMemoryOperandError: If the operand is not a memory reference
        UnsupportedRegisterError / UnsupportedSegmentError: On unknown names
    """
    expression = parse_memory_operand(operand_text)
    address = evaluate_expression(arch, context, expression)
    logger.debug(f"Evaluated {operand_text} to {address:#x}")
    return address
