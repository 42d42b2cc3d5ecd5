#!/usr/bin/env python3
"""
crashaddr - recover the memory address a crashing x86/x86-64 instruction accessed.

Feed it the bytes at the instruction pointer (or the disassembled instruction
text) and the register values from the crash, and it prints the addresses of
the instruction's memory operands.
"""

import argparse
import sys
from typing import Dict, List, Optional

from crashaddr.architecture import Architecture
from crashaddr.calculator import AddressCalculator
from crashaddr.config import BACKENDS, DisassemblerConfig
from crashaddr.context import CpuContext, make_context
from crashaddr.disassembler import create_disassembler
from crashaddr.error_handling import (
    CrashAddrError,
    NotAMemoryOperandError,
    get_error_handler,
)
from crashaddr.expression import evaluate
from crashaddr.memory import BytesMemoryRegion
from crashaddr.tokenizer import DisassembledInstruction, Operand, tokenize


def parse_register(assignment: str) -> tuple:
    """Parse a NAME=VALUE register assignment (VALUE in any Python int base)"""
    name, sep, value = assignment.partition('=')
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {assignment!r}")
    try:
        return name.strip().lower(), int(value.strip(), 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid register value in {assignment!r}")


def parse_int(value: str) -> int:
    """Parse an integer in any Python int base (0x10, 0o20, 16)"""
    try:
        return int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer {value!r}")


def build_context(arch: Architecture, registers: List[tuple]) -> CpuContext:
    values: Dict[str, int] = dict(registers)
    try:
        return make_context(arch, **values)
    except TypeError as e:
        raise CrashAddrError(f"Unknown register for {arch.value}: {e}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='crashaddr',
        description='Recover the memory address accessed by a faulting x86/x86-64 instruction',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:

  Decode bytes with objdump and evaluate the source operand:
    crashaddr --arch x86 --bytes 8b4610 --reg esi=0x1000 --operand src

  Evaluate already-disassembled text:
    crashaddr --arch amd64 --text "mov rax,QWORD PTR [rbx+rcx*8-0x10]" \\
              --reg rbx=0x7f0000001000 --reg rcx=2

ENVIRONMENT:
  CRASHADDR_BACKEND   objdump (default) or capstone
  CRASHADDR_OBJDUMP   objdump executable to run
  CRASHADDR_TIMEOUT   seconds to wait for objdump
"""
    )

    parser.add_argument(
        '--arch',
        type=str,
        required=True,
        metavar='ARCH',
        help='Architecture of the crash context: x86 or amd64'
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--bytes',
        type=str,
        metavar='HEX',
        help='Instruction bytes at the instruction pointer, as hex'
    )
    source.add_argument(
        '--text',
        type=str,
        metavar='INSTRUCTION',
        help='Disassembled instruction text (skips disassembly)'
    )

    parser.add_argument(
        '--address',
        type=parse_int,
        default=None,
        help='Address of the instruction bytes (default: eip/rip, or 0)'
    )
    parser.add_argument(
        '--reg',
        type=parse_register,
        action='append',
        default=[],
        metavar='NAME=VALUE',
        help='Register value from the crash context (repeatable)'
    )
    parser.add_argument(
        '--operand',
        choices=['src', 'dest', 'both'],
        default='both',
        help='Operand to evaluate (default: both)'
    )

    backend = parser.add_argument_group('Disassembler Options')
    backend.add_argument(
        '--backend',
        choices=BACKENDS,
        help='Disassembler backend (overrides CRASHADDR_BACKEND)'
    )
    backend.add_argument(
        '--objdump',
        type=str,
        metavar='PATH',
        help='objdump executable (overrides CRASHADDR_OBJDUMP)'
    )
    backend.add_argument(
        '--timeout',
        type=float,
        help='Seconds to wait for objdump (overrides CRASHADDR_TIMEOUT)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Verbose logging with full error reports'
    )
    return parser


def build_config(args: argparse.Namespace) -> DisassemblerConfig:
    config = DisassemblerConfig.from_env()
    overrides = {
        'backend': args.backend,
        'objdump_path': args.objdump,
        'timeout': args.timeout,
    }
    values = {key: value for key, value in vars(config).items()}
    values.update({key: value for key, value in overrides.items() if value is not None})
    return DisassemblerConfig(**values)


def decode(args: argparse.Namespace, arch: Architecture, context: CpuContext):
    """Return (instruction, evaluator) where evaluator maps an Operand to an address"""
    if args.text is not None:
        instruction = tokenize(args.text)
        return instruction, lambda which: evaluate(arch, context, instruction.operand(which))

    try:
        raw_bytes = bytes.fromhex(args.bytes)
    except ValueError:
        raise CrashAddrError(f"Invalid hex bytes: {args.bytes!r}")

    address = args.address
    if address is None:
        address = getattr(context, 'eip' if arch is Architecture.X86 else 'rip')

    region = BytesMemoryRegion(address, raw_bytes)
    calculator = AddressCalculator(arch, region, address, create_disassembler(build_config(args)))
    if calculator.error is not None:
        raise calculator.error
    return calculator.instruction, lambda which: calculator.calculate_address(context, which)


def report(instruction: DisassembledInstruction, evaluator, operands: List[Operand]) -> int:
    print(f"Instruction: {instruction}")
    resolved = 0
    for which in operands:
        text = instruction.operand(which)
        try:
            address = evaluator(which)
        except NotAMemoryOperandError:
            print(f"  {which.value:<4}  {text or '-':<32}  no address")
            continue
        except CrashAddrError as e:
            get_error_handler().handle_error(e)
            print(f"  {which.value:<4}  {text:<32}  no address")
            continue
        print(f"  {which.value:<4}  {text:<32}  {address:#018x}")
        resolved += 1
    return resolved


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the crashaddr CLI"""
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = get_error_handler()
    handler.debug_mode = args.debug
    handler.configure_console()

    operands = {
        'src': [Operand.SRC],
        'dest': [Operand.DEST],
        'both': [Operand.DEST, Operand.SRC],
    }[args.operand]

    try:
        arch = Architecture.from_name(args.arch)
        context = build_context(arch, args.reg)
        instruction, evaluator = decode(args, arch, context)
        resolved = report(instruction, evaluator, operands)
    except CrashAddrError as e:
        handler.handle_error(e)
        return 1

    return 0 if resolved else 1


if __name__ == '__main__':
    sys.exit(main())
