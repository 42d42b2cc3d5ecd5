"""Disassembler backend configuration"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from crashaddr.architecture import MAX_X86_INSTRUCTION_LENGTH
from crashaddr.error_handling import ConfigurationError


BACKENDS = ('objdump', 'capstone')


@dataclass
class DisassemblerConfig:
    """
    Settings for the disassembly service.

    Attributes:
        backend: "objdump" (external process) or "capstone" (in-process)
        objdump_path: objdump executable name or path
        timeout: Seconds to wait for objdump before giving up
        max_instruction_length: Upper bound on bytes handed to the disassembler
    """
    backend: str = 'objdump'
    objdump_path: str = 'objdump'
    timeout: float = 10.0
    max_instruction_length: int = MAX_X86_INSTRUCTION_LENGTH

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown disassembler backend: {self.backend}",
                suggestion=f"Choose one of: {', '.join(BACKENDS)}"
            )
        if self.timeout <= 0:
            raise ConfigurationError(f"Timeout must be positive, got {self.timeout}")
        if not 1 <= self.max_instruction_length <= MAX_X86_INSTRUCTION_LENGTH:
            raise ConfigurationError(
                f"max_instruction_length must be between 1 and {MAX_X86_INSTRUCTION_LENGTH}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'DisassemblerConfig':
        """
        Build a configuration from CRASHADDR_* environment variables.

        CRASHADDR_BACKEND, CRASHADDR_OBJDUMP and CRASHADDR_TIMEOUT override the
        defaults when set.
        """
        if environ is None:
            environ = os.environ

        kwargs = {}
        if environ.get('CRASHADDR_BACKEND'):
            kwargs['backend'] = environ['CRASHADDR_BACKEND'].lower()
        if environ.get('CRASHADDR_OBJDUMP'):
            kwargs['objdump_path'] = environ['CRASHADDR_OBJDUMP']
        if environ.get('CRASHADDR_TIMEOUT'):
            try:
                kwargs['timeout'] = float(environ['CRASHADDR_TIMEOUT'])
            except ValueError:
                raise ConfigurationError(
                    f"Invalid CRASHADDR_TIMEOUT: {environ['CRASHADDR_TIMEOUT']!r}"
                )

        return cls(**kwargs)
