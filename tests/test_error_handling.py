"""Tests for error types and the error handler."""

import logging

import pytest

from crashaddr.error_handling import (
    CrashAddrError,
    DisassemblyUnavailableError,
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    ErrorSeverity,
    NotAMemoryOperandError,
    OutOfRangeError,
    UnsupportedRegisterError,
    create_error,
    handle_gracefully,
)


def test_categories():
    assert UnsupportedRegisterError("x").category is ErrorCategory.REGISTER_ERROR
    assert OutOfRangeError("x").category is ErrorCategory.MEMORY_ERROR
    assert NotAMemoryOperandError("eax").category is ErrorCategory.OPERAND_ERROR


def test_str_is_message():
    assert str(DisassemblyUnavailableError("no bytes")) == "no bytes"


def test_format_report():
    error = UnsupportedRegisterError(
        "Unsupported x86 register: ax",
        context=ErrorContext(architecture="x86", address=0x401000, operand="ax"),
        suggestion="Only full-width registers are supported.",
    )
    report = error.format_report()
    assert "ERROR: Register Error" in report
    assert "Address: 0x401000" in report
    assert "Operand: ax" in report
    assert "Suggestion: Only full-width registers are supported." in report


def test_create_error():
    error = create_error(
        "objdump_failed",
        error_class=DisassemblyUnavailableError,
        status=2,
        target="i386",
    )
    assert isinstance(error, DisassemblyUnavailableError)
    assert error.message == "objdump exited with status 2"
    assert "i386" in error.suggestion


def test_create_error_unknown_key():
    error = create_error("no_such_error")
    assert type(error) is CrashAddrError
    assert "no_such_error" in error.message


def test_handler_log_levels(caplog):
    handler = ErrorHandler()
    with caplog.at_level(logging.INFO, logger='crashaddr'):
        handler.handle_error(NotAMemoryOperandError("eax"))
        handler.handle_error(OutOfRangeError("outside"))
        handler.handle_error(ValueError("plain"))
    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.INFO, logging.ERROR, logging.ERROR]


def test_handler_reraise():
    with pytest.raises(OutOfRangeError):
        ErrorHandler().handle_error(OutOfRangeError("outside"), reraise=True)


def test_handle_gracefully():
    @handle_gracefully
    def fails():
        raise UnsupportedRegisterError("bad")

    @handle_gracefully
    def crashes():
        raise KeyError("unexpected")

    @handle_gracefully
    def works():
        return 7

    assert fails() is None
    assert crashes() is None
    assert works() == 7
    assert works.__name__ == 'works'


def test_not_a_memory_operand_severity():
    error = NotAMemoryOperandError("0x10", 4, "expected ':'")
    assert error.severity is ErrorSeverity.INFO
    assert error.context.operand == "0x10"
    assert "expected ':' at position 4" in str(error)
