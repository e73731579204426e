"""
TD4 Cycle Emulator
==================
A cycle-step emulator for the TD4 4-bit didactic CPU: two 4-bit
accumulators (A, B), a carry flag, one input latch, one output latch and
an 8-bit program counter addressing the instruction ROM.

Every instruction is a single byte.  The high nibble selects the
operation, the low nibble is an immediate operand.  ``execute`` runs
exactly one fetch/decode/execute cycle against caller-owned state, so a
harness can inspect registers and port between instructions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Iterable, NamedTuple, Optional

# ---------------------------------------------------------------------------
#  Constants
# ---------------------------------------------------------------------------

MASK4 = 0x0F
MASK8 = 0xFF

# ---------------------------------------------------------------------------
#  Helpers
# ---------------------------------------------------------------------------

def u4(v: int) -> int:
    """Mask to unsigned 4 bits."""
    return v & MASK4

def u8(v: int) -> int:
    """Mask to unsigned 8 bits."""
    return v & MASK8

def _check_range(name: str, value: int, bits: int):
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{name} must be a {bits}-bit value, got {value!r}")

# ---------------------------------------------------------------------------
#  Errors
# ---------------------------------------------------------------------------

class TD4Error(Exception):
    """Base for emulator-generated errors."""
    pass

class UnsupportedOpcode(TD4Error):
    def __init__(self, bits: int, message: str = ""):
        self.bits = bits
        super().__init__(message or f"Unsupported opcode {bits:#06b}")

# ---------------------------------------------------------------------------
#  Opcode table
# ---------------------------------------------------------------------------

class Opcode(IntEnum):
    ADD_A  = 0b0000  # ADD A, Im
    MOV_AB = 0b0001  # MOV A, B
    IN_A   = 0b0010  # IN A
    MOV_A  = 0b0011  # MOV A, Im
    MOV_BA = 0b0100  # MOV B, A
    ADD_B  = 0b0101  # ADD B, Im
    IN_B   = 0b0110  # IN B
    MOV_B  = 0b0111  # MOV B, Im
    OUT_B  = 0b1001  # OUT B
    OUT    = 0b1011  # OUT Im
    JNC    = 0b1110  # JNC Im
    JMP    = 0b1111  # JMP Im

    @classmethod
    def from_bits(cls, bits: int) -> Opcode:
        """Resolve a 4-bit code, raising UnsupportedOpcode for 8/10/12/13."""
        try:
            return _OPCODES[bits]
        except KeyError:
            raise UnsupportedOpcode(bits) from None

_OPCODES = {op.value: op for op in Opcode}


class Instruction(NamedTuple):
    opcode: Opcode
    immediate: int

# ---------------------------------------------------------------------------
#  Processor state
# ---------------------------------------------------------------------------

@dataclass
class Register:
    """CPU registers.  ``c`` is the carry flag, always 0 or 1."""
    pc: int = 0
    a: int = 0
    b: int = 0
    c: int = 0

    def __post_init__(self):
        _check_range("pc", self.pc, 8)
        _check_range("a", self.a, 4)
        _check_range("b", self.b, 4)
        _check_range("c", self.c, 1)


@dataclass
class Port:
    """I/O port: ``i`` is driven by the environment, ``o`` by OUT/OUT B."""
    i: int = 0
    o: int = 0
    on_output: Optional[Callable[[int], None]] = field(
        default=None, repr=False, compare=False)  # called with new o

    def __post_init__(self):
        _check_range("i", self.i, 4)
        _check_range("o", self.o, 4)

    def write(self, value: int):
        self.o = u4(value)
        if self.on_output:
            self.on_output(self.o)


class Rom:
    """Read-only instruction memory addressed by the program counter."""

    def __init__(self, data: Iterable[int] = b""):
        self._data = bytes(data)

    @classmethod
    def from_hex(cls, text: str) -> Rom:
        """Parse whitespace/comma separated hex bytes, e.g. ``"10 0x0F b5"``."""
        words = text.replace(",", " ").split()
        try:
            return cls(int(w, 16) for w in words)
        except ValueError:
            raise ValueError(f"invalid ROM hex string: {text!r}") from None

    @classmethod
    def from_file(cls, path: str) -> Rom:
        with open(path, "rb") as f:
            return cls(f.read())

    def __len__(self) -> int:
        return len(self._data)

    def __getitem__(self, addr: int) -> int:
        return self._data[addr]

    def __iter__(self):
        return iter(self._data)

    def __eq__(self, other) -> bool:
        if isinstance(other, Rom):
            return self._data == other._data
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._data)

    def __repr__(self) -> str:
        return f"Rom({self._data.hex(' ')!r})"

    def read(self, addr: int) -> int:
        """Byte at *addr*, or 0 for any address past the end."""
        if addr < len(self._data):
            return self._data[addr]
        return 0

# =========================================================================
#  CYCLE: fetch / decode / execute
# =========================================================================

def fetch(register: Register, rom: Rom) -> int:
    """Fetch the byte at PC and advance PC.

    The bounds guard is ``len(rom) < pc``: when PC is further than one
    byte past the end, 0 is returned and PC stays put.  At exactly
    ``pc == len(rom)`` the guard passes, the read yields 0 and PC still
    advances.  That off-by-one is part of the machine's behaviour.
    """
    if len(rom) < register.pc:
        return 0
    code = rom.read(register.pc)
    register.pc = u8(register.pc + 1)
    return code


def decode(code: int) -> Instruction:
    """Split an instruction byte into (opcode, immediate)."""
    return Instruction(Opcode.from_bits((code >> 4) & MASK4), code & MASK4)


def execute(register: Register, port: Port, rom: Rom):
    """Run one instruction cycle.  Raises UnsupportedOpcode on a bad byte."""
    op, im = decode(fetch(register, rom))

    if   op == Opcode.ADD_A:  add_a(register, im)
    elif op == Opcode.ADD_B:  add_b(register, im)
    elif op == Opcode.MOV_A:  mov_a(register, im)
    elif op == Opcode.MOV_B:  mov_b(register, im)
    elif op == Opcode.MOV_AB: mov_ab(register)
    elif op == Opcode.MOV_BA: mov_ba(register)
    elif op == Opcode.JMP:    jmp(register, im)
    elif op == Opcode.JNC:    jnc(register, im)
    elif op == Opcode.IN_A:   in_a(register, port)
    elif op == Opcode.IN_B:   in_b(register, port)
    elif op == Opcode.OUT:    out(register, port, im)
    elif op == Opcode.OUT_B:  out_b(register, port)

# =========================================================================
#  Instruction handlers
# =========================================================================

def _add(register: Register, l: int, m: int) -> int:
    # carry is only ever set here, never cleared
    n = l + m
    if n > MASK4:
        register.c = 1
    return u4(n)

def add_a(register: Register, im: int):
    register.a = _add(register, register.a, im)

def add_b(register: Register, im: int):
    register.b = _add(register, register.b, im)

def mov_a(register: Register, im: int):
    register.a = u4(im)
    register.c = 0

def mov_b(register: Register, im: int):
    register.b = u4(im)
    register.c = 0

def mov_ab(register: Register):
    register.a = register.b
    register.c = 0

def mov_ba(register: Register):
    register.b = register.a
    register.c = 0

def jmp(register: Register, im: int):
    register.pc = u4(im)
    register.c = 0

def jnc(register: Register, im: int):
    if register.c == 0:
        register.pc = u4(im)
    register.c = 0

def in_a(register: Register, port: Port):
    register.a = u4(port.i)
    register.c = 0

def in_b(register: Register, port: Port):
    register.b = u4(port.i)
    register.c = 0

def out(register: Register, port: Port, im: int):
    port.write(im)
    register.c = 0

def out_b(register: Register, port: Port):
    port.write(register.b)
    register.c = 0

# -- Debug / introspection --

def dump_state(register: Register, port: Port) -> str:
    return "\n".join([
        f"  PC = {register.pc:#04x}",
        f"  A  = {register.a:#03x}  B = {register.b:#03x}  C = {register.c}",
        f"  IN = {port.i:#03x}  OUT = {port.o:#03x}",
    ])
