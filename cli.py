#!/usr/bin/env python3
"""
TD4 Single-Cycle Harness
========================
Builds the initial registers, port and ROM from the command line, runs
one instruction cycle and prints the machine state before and after.

Usage:
  python cli.py [ROM_HEX ...] [--file ROM.bin] [--pc N] [--a N] [--b N]
                [--c N] [--in N]
"""

from __future__ import annotations
import argparse
import sys

from td4 import (Register, Port, Rom, UnsupportedOpcode, decode, dump_state,
                 execute)

# Program used when no ROM is given: one MOV A, B
DEMO_ROM = bytes([0x10])


def _int(text: str) -> int:
    return int(text, 0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="TD4 single-cycle emulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  python cli.py 10 --a 5 --b 9\n"
               "  python cli.py 0x0F --a 5\n"
               "  python cli.py --file program.bin --pc 3 --in 7\n"
    )
    parser.add_argument("rom", nargs="*", metavar="ROM_HEX",
                        help="ROM bytes in hex (default: demo program 10)")
    parser.add_argument("--file", "-f", type=str, default=None,
                        help="Load ROM from a binary file instead")
    parser.add_argument("--pc", type=_int, default=0,
                        help="Initial program counter (default: 0)")
    parser.add_argument("--a", type=_int, default=0,
                        help="Initial A register (default: 0)")
    parser.add_argument("--b", type=_int, default=0,
                        help="Initial B register (default: 0)")
    parser.add_argument("--c", type=_int, default=0,
                        help="Initial carry flag (default: 0)")
    parser.add_argument("--in", dest="inp", type=_int, default=0,
                        help="Input latch value (default: 0)")
    return parser


def load_rom(args: argparse.Namespace) -> Rom:
    if args.file:
        return Rom.from_file(args.file)
    if args.rom:
        return Rom.from_hex(" ".join(args.rom))
    return Rom(DEMO_ROM)


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.file and args.rom:
        parser.error("give ROM bytes or --file, not both")

    try:
        rom = load_rom(args)
        register = Register(pc=args.pc, a=args.a, b=args.b, c=args.c)
        port = Port(i=args.inp)
    except (ValueError, OSError) as e:
        parser.error(str(e))

    port.on_output = lambda v: print(f"[out] {v:#03x}")

    print(f"ROM ({len(rom)} bytes): {bytes(rom).hex(' ') or '-'}")
    print("Before:")
    print(dump_state(register, port))

    pc = register.pc
    code = rom.read(pc)
    try:
        execute(register, port, rom)
    except UnsupportedOpcode as e:
        print(f"Error: {e} at PC {pc:#04x}", file=sys.stderr)
        sys.exit(1)

    op, im = decode(code)
    print(f"Executed {pc:#04x}: {code:#04x} -> {op.name} {im:#03x}")
    print("After:")
    print(dump_state(register, port))


if __name__ == "__main__":
    main()
