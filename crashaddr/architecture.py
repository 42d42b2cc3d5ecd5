"""Architecture tags for crash contexts and instruction decoding"""
from enum import Enum

from crashaddr.error_handling import UnsupportedArchitectureError


# x86 and x86-64 instructions never exceed 15 bytes
MAX_X86_INSTRUCTION_LENGTH = 15


class Architecture(Enum):
    """Supported CPU context architectures"""
    X86 = "x86"
    AMD64 = "amd64"

    @property
    def objdump_target(self) -> str:
        """Machine name passed to ``objdump -m``"""
        return _OBJDUMP_TARGETS[self]

    @property
    def pointer_size(self) -> int:
        """Native pointer width in bytes"""
        return 4 if self is Architecture.X86 else 8

    @property
    def max_instruction_length(self) -> int:
        return MAX_X86_INSTRUCTION_LENGTH

    @classmethod
    def from_name(cls, name: str) -> 'Architecture':
        """
        Look up an architecture by one of its common names.

        Args:
            name: Architecture name (e.g. "x86", "i386", "amd64", "x86_64")

        Returns:
            Matching Architecture

        Raises:
            UnsupportedArchitectureError: If the name is not recognised
        """
        if isinstance(name, Architecture):
            return name
        arch = _ALIASES.get(str(name).lower().strip())
        if arch is None:
            raise UnsupportedArchitectureError(f"Unsupported architecture: {name}")
        return arch


_OBJDUMP_TARGETS = {
    Architecture.X86: "i386",
    Architecture.AMD64: "i386:x86-64",
}

_ALIASES = {
    'x86': Architecture.X86,
    'i386': Architecture.X86,
    'ia32': Architecture.X86,
    'amd64': Architecture.AMD64,
    'x86_64': Architecture.AMD64,
    'x86-64': Architecture.AMD64,
    'x64': Architecture.AMD64,
}


def require_architecture(arch) -> Architecture:
    """Validate that ``arch`` is a supported Architecture member"""
    if not isinstance(arch, Architecture):
        raise UnsupportedArchitectureError(f"Unsupported architecture: {arch!r}")
    return arch
