"""
Disassembly services producing objdump-style Intel syntax text.

The address calculator only needs the text of the first instruction in a byte
window, formatted the way ``objdump -M intel`` prints it::

    lock cmpxchg DWORD PTR [esi+0x10],eax

Two backends are provided: one that shells out to objdump and one that uses
the Capstone engine in-process and renders its operands in the same form.
"""
import logging
import os
import re
import subprocess
import tempfile
from abc import ABC, abstractmethod
from typing import Optional

from crashaddr.architecture import Architecture, require_architecture
from crashaddr.config import DisassemblerConfig
from crashaddr.error_handling import (
    DisassemblyUnavailableError,
    ErrorContext,
    create_error,
)

logger = logging.getLogger(__name__)

try:
    from capstone import Cs, CsError, CS_ARCH_X86, CS_MODE_32, CS_MODE_64
    from capstone.x86_const import X86_OP_REG, X86_OP_IMM, X86_OP_MEM, X86_REG_INVALID
    CAPSTONE_AVAILABLE = True
except ImportError:
    CAPSTONE_AVAILABLE = False


# Matches an instruction line of objdump output:
#    0:	lock cmpxchg DWORD PTR [esi+0x10],eax
OBJDUMP_INSTRUCTION_RE = re.compile(r'^\s+[0-9a-f]+:\s+(\S.*?)\s*$')


class DisassemblyService(ABC):
    """Turns raw instruction bytes into the text of the first instruction"""

    def __init__(self, config: Optional[DisassemblerConfig] = None):
        self.config = config or DisassemblerConfig()

    def disassemble(self, arch: Architecture, raw_bytes: bytes) -> str:
        """
        Disassemble the first instruction in ``raw_bytes``.

        At most ``config.max_instruction_length`` bytes are considered.

        Args:
            arch: Architecture to decode for
            raw_bytes: Bytes starting at the instruction pointer

        Returns:
            Mnemonic and operands, e.g. "cmp eax,DWORD PTR [esi+0x10]"

        Raises:
            UnsupportedArchitectureError: If ``arch`` is not x86/x86-64
            DisassemblyUnavailableError: If nothing could be decoded
        """
        require_architecture(arch)
        if not raw_bytes:
            raise DisassemblyUnavailableError(
                "No instruction bytes to disassemble",
                context=ErrorContext(architecture=arch.value)
            )

        window = bytes(raw_bytes[:self.config.max_instruction_length])
        instruction = self._disassemble(arch, window)
        logger.debug(f"Disassembled {window.hex()} as {instruction!r}")
        return instruction

    @abstractmethod
    def _disassemble(self, arch: Architecture, window: bytes) -> str:
        pass


class ObjdumpDisassemblyService(DisassemblyService):
    """Disassembles by running GNU objdump on a temporary file"""

    def _disassemble(self, arch: Architecture, window: bytes) -> str:
        context = ErrorContext(architecture=arch.value)

        try:
            fd, path = tempfile.mkstemp(prefix='crashaddr-raw_bytes-')
            with os.fdopen(fd, 'wb') as raw_file:
                raw_file.write(window)
        except OSError as e:
            self._fail("tempfile_failed", e, context, reason=e)

        cmd = [
            self.config.objdump_path,
            '-D', '--no-show-raw-insn',
            '-b', 'binary',
            '-M', 'intel',
            '-m', arch.objdump_target,
            path,
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.config.timeout
            )
        except FileNotFoundError as e:
            self._fail("objdump_not_found", e, context, path=self.config.objdump_path)
        except subprocess.TimeoutExpired as e:
            self._fail("objdump_timeout", e, context, timeout=self.config.timeout)
        except OSError as e:
            self._fail("objdump_not_runnable", e, context,
                       path=self.config.objdump_path, reason=e)
        finally:
            try:
                os.unlink(path)
            except OSError as e:
                logger.warning(f"Failed to remove temporary file {path}: {e}")

        if result.returncode != 0:
            logger.error(f"Failed to call objdump: {result.stderr.strip()}")
            raise create_error(
                "objdump_failed",
                error_class=DisassemblyUnavailableError,
                context=context,
                status=result.returncode,
                target=arch.objdump_target,
            )

        return parse_objdump_output(result.stdout)

    def _fail(self, error_key: str, cause: Exception, context: ErrorContext, **format_args):
        """Log and raise a DisassemblyUnavailableError wrapping ``cause``"""
        error = create_error(
            error_key,
            error_class=DisassemblyUnavailableError,
            context=context,
            **format_args
        )
        error.original_exception = cause
        logger.error(str(error))
        raise error from cause


def parse_objdump_output(output: str) -> str:
    """
    Extract the first instruction from objdump's disassembly listing.

    Raises:
        DisassemblyUnavailableError: If the listing has no instruction line
    """
    for line in output.splitlines():
        match = OBJDUMP_INSTRUCTION_RE.match(line)
        if match:
            return match.group(1)

    logger.info("Failed to find instruction in objdump output")
    raise create_error("no_instruction", error_class=DisassemblyUnavailableError)


_SIZE_KEYWORDS = {
    1: 'BYTE',
    2: 'WORD',
    4: 'DWORD',
    8: 'QWORD',
}


class CapstoneDisassemblyService(DisassemblyService):
    """
    Disassembles in-process with Capstone.

    Capstone's own operand text ("dword ptr [esi + 0x10]") differs from
    objdump's, so operands are rebuilt from the instruction details.
    """

    def __init__(self, config: Optional[DisassemblerConfig] = None):
        if not CAPSTONE_AVAILABLE:
            raise create_error("capstone_missing", error_class=DisassemblyUnavailableError)
        super().__init__(config)
        self._engines = {}

    def _engine(self, arch: Architecture):
        engine = self._engines.get(arch)
        if engine is None:
            mode = CS_MODE_32 if arch is Architecture.X86 else CS_MODE_64
            engine = Cs(CS_ARCH_X86, mode)
            engine.detail = True
            self._engines[arch] = engine
        return engine

    def _disassemble(self, arch: Architecture, window: bytes) -> str:
        try:
            insn = next(self._engine(arch).disasm(window, 0, 1), None)
        except CsError as e:
            raise DisassemblyUnavailableError(
                f"Capstone failed to disassemble: {e}",
                context=ErrorContext(architecture=arch.value),
                original_exception=e
            )

        if insn is None:
            raise create_error(
                "no_instruction",
                error_class=DisassemblyUnavailableError,
                context=ErrorContext(architecture=arch.value)
            )

        operands = [self._format_operand(insn, op) for op in insn.operands]
        if operands:
            return f"{insn.mnemonic} {','.join(operands)}"
        return insn.mnemonic

    def _format_operand(self, insn, op) -> str:
        if op.type == X86_OP_REG:
            return insn.reg_name(op.reg)

        if op.type == X86_OP_IMM:
            imm = op.imm
            if imm < 0 and op.size:
                imm &= (1 << (op.size * 8)) - 1
            return f"{imm:#x}"

        if op.type == X86_OP_MEM:
            return self._format_memory(insn, op)

        return insn.op_str

    def _format_memory(self, insn, op) -> str:
        mem = op.mem
        terms = []
        if mem.base != X86_REG_INVALID:
            terms.append(insn.reg_name(mem.base))
        if mem.index != X86_REG_INVALID:
            terms.append(f"{insn.reg_name(mem.index)}*{mem.scale}")

        inner = "+".join(terms)
        if not inner:
            inner = f"{mem.disp & ((1 << 64) - 1):#x}"
        elif mem.disp < 0:
            inner += f"-{-mem.disp:#x}"
        elif mem.disp > 0:
            inner += f"+{mem.disp:#x}"

        text = f"[{inner}]"
        if mem.segment != X86_REG_INVALID:
            text = f"{insn.reg_name(mem.segment)}:{text}"

        size = _SIZE_KEYWORDS.get(op.size)
        if size:
            text = f"{size} PTR {text}"
        return text


def create_disassembler(config: Optional[DisassemblerConfig] = None) -> DisassemblyService:
    """
    Factory function to create the configured disassembly service.

    Args:
        config: Backend selection; defaults to DisassemblerConfig.from_env()

    Returns:
        DisassemblyService instance
    """
    if config is None:
        config = DisassemblerConfig.from_env()
    if config.backend == 'capstone':
        return CapstoneDisassemblyService(config)
    return ObjdumpDisassemblyService(config)
