"""
Error types and error reporting for crashaddr.

Every failure inside the address-recovery core is raised as a typed
``CrashAddrError`` subclass. Callers that must never fail (the crash-analysis
pipeline) go through ``handle_gracefully`` or the ``try_*`` calculator methods,
which report the error through the shared ``ErrorHandler`` and return ``None``.
"""

import sys
import traceback
import logging
from enum import Enum
from typing import Optional, Dict, Any
from dataclasses import dataclass


class ErrorSeverity(Enum):
    """Error severity levels."""
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


class ErrorCategory(Enum):
    """Categories of errors that can occur."""
    ARCHITECTURE_ERROR = "Architecture Error"
    DISASSEMBLY_ERROR = "Disassembly Error"
    OPERAND_ERROR = "Operand Error"
    REGISTER_ERROR = "Register Error"
    MEMORY_ERROR = "Memory Error"
    CONFIGURATION_ERROR = "Configuration Error"
    INTERNAL_ERROR = "Internal Error"


@dataclass
class ErrorContext:
    """Context information for an error."""
    architecture: Optional[str] = None
    address: Optional[int] = None
    instruction: Optional[str] = None
    operand: Optional[str] = None
    function: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class CrashAddrError(Exception):
    """Base exception class for crashaddr errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        suggestion: Optional[str] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.suggestion = suggestion
        self.original_exception = original_exception

    def __str__(self):
        return self.message

    def format_report(self) -> str:
        """Format error message with all context."""
        lines = [
            f"\n{'='*70}",
            f"{self.severity.value}: {self.category.value}",
            f"{'='*70}",
            f"\nMessage: {self.message}",
        ]

        if self.context.architecture:
            lines.append(f"Architecture: {self.context.architecture}")
        if self.context.address is not None:
            lines.append(f"Address: {self.context.address:#x}")
        if self.context.instruction:
            lines.append(f"Instruction: {self.context.instruction}")
        if self.context.operand:
            lines.append(f"Operand: {self.context.operand}")
        if self.context.function:
            lines.append(f"Function: {self.context.function}")
        if self.context.additional_info:
            lines.append("\nAdditional Information:")
            for key, value in self.context.additional_info.items():
                lines.append(f"  {key}: {value}")

        if self.suggestion:
            lines.append(f"\nSuggestion: {self.suggestion}")

        if self.original_exception:
            lines.append(f"\nOriginal Exception: {type(self.original_exception).__name__}")
            lines.append(f"  {str(self.original_exception)}")

        lines.append(f"{'='*70}\n")

        return "\n".join(lines)


class UnsupportedArchitectureError(CrashAddrError):
    """The CPU architecture is not x86 or x86-64."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.ARCHITECTURE_ERROR,
            **kwargs
        )


class DisassemblyUnavailableError(CrashAddrError):
    """The disassembler produced no usable instruction text."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.DISASSEMBLY_ERROR,
            **kwargs
        )


class MalformedOperandsError(CrashAddrError):
    """Instruction text has a structurally invalid operand list."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.OPERAND_ERROR,
            **kwargs
        )


class NotAMemoryOperandError(CrashAddrError):
    """
    Operand text is not a bracketed memory reference.

    This is the expected outcome for register and immediate operands, so it is
    reported at INFO severity. ``position`` is the offset in ``text`` where
    parsing stopped and ``reason`` names what was expected there.
    """

    def __init__(self, text: str, position: int = 0, reason: str = "not a memory reference", **kwargs):
        kwargs.setdefault('severity', ErrorSeverity.INFO)
        kwargs.setdefault('context', ErrorContext(operand=text))
        super().__init__(
            f"Not a memory operand: {text!r} ({reason} at position {position})",
            category=ErrorCategory.OPERAND_ERROR,
            **kwargs
        )
        self.text = text
        self.position = position
        self.reason = reason


class UnsupportedRegisterError(CrashAddrError):
    """Register name is outside the architecture's supported set."""

    def __init__(self, message: str, register: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.REGISTER_ERROR,
            **kwargs
        )
        self.register = register


class UnsupportedSegmentError(CrashAddrError):
    """Segment name is outside the architecture's supported set."""

    def __init__(self, message: str, segment: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.REGISTER_ERROR,
            **kwargs
        )
        self.segment = segment


class OutOfRangeError(CrashAddrError):
    """Address lies outside the memory region."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.MEMORY_ERROR,
            **kwargs
        )


class ConfigurationError(CrashAddrError):
    """Error related to configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION_ERROR,
            **kwargs
        )


class ErrorHandler:
    """Central error handler for crashaddr."""

    def __init__(self, debug_mode: bool = False):
        self.debug_mode = debug_mode
        self.logger = logging.getLogger("crashaddr")

    def configure_console(self):
        """Attach a stderr handler to the crashaddr logger."""
        self.logger.setLevel(logging.DEBUG if self.debug_mode else logging.INFO)
        if self.logger.handlers:
            return

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG if self.debug_mode else logging.INFO)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        self.logger.addHandler(console_handler)

    def handle_error(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None,
        reraise: bool = False
    ):
        """
        Handle an error with appropriate logging and reporting.

        Args:
            error: The exception to handle
            context: Additional context information
            reraise: Whether to re-raise the exception after handling
        """
        if isinstance(error, CrashAddrError):
            self._log_error(error)
        else:
            wrapped = CrashAddrError(
                message=str(error),
                context=context,
                original_exception=error
            )
            self._log_error(wrapped)

        if self.debug_mode:
            traceback.print_exc()

        if reraise:
            raise error

    def _log_error(self, error: CrashAddrError):
        """Log a crashaddr error with appropriate level."""
        error_message = error.format_report() if self.debug_mode else str(error)

        if error.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(error_message)
        elif error.severity == ErrorSeverity.ERROR:
            self.logger.error(error_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(error_message)
        else:
            self.logger.info(error_message)


# Global error handler instance
_error_handler: Optional[ErrorHandler] = None


def get_error_handler(debug_mode: bool = False) -> ErrorHandler:
    """Get or create the global error handler."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler(debug_mode=debug_mode)
    return _error_handler


def handle_gracefully(func):
    """
    Decorator for graceful error handling.

    Catches exceptions and reports them through the global handler, returning
    None instead of propagating.
    """
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CrashAddrError as e:
            get_error_handler().handle_error(e)
            return None
        except Exception as e:
            context = ErrorContext(
                function=func.__name__,
                additional_info={"args": str(args), "kwargs": str(kwargs)}
            )
            get_error_handler().handle_error(e, context=context)
            return None

    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


# Common error messages with suggestions
ERROR_MESSAGES = {
    "objdump_not_found": {
        "message": "objdump executable not found: {path}",
        "suggestion": "Install binutils or point CRASHADDR_OBJDUMP at an objdump binary."
    },
    "objdump_not_runnable": {
        "message": "Cannot run objdump at {path}: {reason}",
        "suggestion": "Point CRASHADDR_OBJDUMP at an executable objdump binary."
    },
    "tempfile_failed": {
        "message": "Cannot write instruction bytes to a temporary file: {reason}",
        "suggestion": "Check that TMPDIR is writable or switch to the capstone backend."
    },
    "objdump_failed": {
        "message": "objdump exited with status {status}",
        "suggestion": "Check that this objdump build supports the {target} target."
    },
    "objdump_timeout": {
        "message": "objdump did not finish within {timeout} seconds",
        "suggestion": "Increase CRASHADDR_TIMEOUT or switch to the capstone backend."
    },
    "no_instruction": {
        "message": "No instruction found in disassembler output",
        "suggestion": "The bytes at the instruction pointer may not be valid code."
    },
    "capstone_missing": {
        "message": "Capstone library is not installed",
        "suggestion": "Install with: pip install capstone"
    },
    "address_out_of_range": {
        "message": "Address {address:#x} is outside memory region [{start:#x}, {end:#x})",
        "suggestion": "The instruction pointer is not covered by the captured memory."
    },
}


def create_error(
    error_key: str,
    error_class: type = CrashAddrError,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
    context: Optional[ErrorContext] = None,
    **format_args
) -> CrashAddrError:
    """
    Create an error from a predefined error message.

    Args:
        error_key: Key in ERROR_MESSAGES dictionary
        error_class: CrashAddrError subclass to instantiate
        severity: Error severity level
        context: Error context
        **format_args: Arguments to format the error message

    Returns:
        Configured error instance
    """
    if error_key not in ERROR_MESSAGES:
        return CrashAddrError(
            message=f"Unknown error: {error_key}",
            severity=severity,
            context=context
        )

    error_info = ERROR_MESSAGES[error_key]
    message = error_info["message"].format(**format_args)
    suggestion = error_info.get("suggestion")
    if suggestion:
        suggestion = suggestion.format(**format_args)

    return error_class(
        message,
        severity=severity,
        context=context,
        suggestion=suggestion
    )
