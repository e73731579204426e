"""
Tests for the single-cycle command-line harness (cli.py).
"""

import contextlib
import io
import os
import tempfile
import unittest

from cli import build_parser, load_rom, main
from td4 import Rom


def run_cli(*argv: str) -> tuple[int, str, str]:
    """Run cli.main, return (exit_status, stdout, stderr)."""
    out, err = io.StringIO(), io.StringIO()
    status = 0
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        try:
            main(list(argv))
        except SystemExit as e:
            status = e.code
    return status, out.getvalue(), err.getvalue()


class TestLoadRom(unittest.TestCase):
    def test_default_demo_program(self):
        args = build_parser().parse_args([])
        self.assertEqual(load_rom(args), Rom([0x10]))

    def test_hex_words(self):
        args = build_parser().parse_args(["0x0F", "b5"])
        self.assertEqual(load_rom(args), Rom([0x0F, 0xB5]))

    def test_file(self):
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "prog.bin")
            with open(path, "wb") as f:
                f.write(b"\xb5")
            args = build_parser().parse_args(["--file", path])
            self.assertEqual(load_rom(args), Rom([0xB5]))


class TestMain(unittest.TestCase):
    def test_demo_mov_ab(self):
        status, out, _ = run_cli("--a", "5", "--b", "9")
        self.assertEqual(status, 0)
        self.assertIn("MOV_AB", out)
        after = out.split("After:")[1]
        self.assertIn("PC = 0x01", after)
        self.assertIn("A  = 0x9", after)
        self.assertIn("C = 0", after)

    def test_add_overflow(self):
        status, out, _ = run_cli("0F", "--a", "5")
        self.assertEqual(status, 0)
        after = out.split("After:")[1]
        self.assertIn("A  = 0x4", after)
        self.assertIn("C = 1", after)

    def test_out_echoes_output(self):
        status, out, _ = run_cli("b5")
        self.assertEqual(status, 0)
        self.assertIn("[out] 0x5", out)
        self.assertIn("OUT = 0x5", out.split("After:")[1])

    def test_in_latch(self):
        status, out, _ = run_cli("20", "--in", "0xc")
        self.assertEqual(status, 0)
        self.assertIn("A  = 0xc", out.split("After:")[1])

    def test_empty_rom_reads_zero(self):
        status, out, _ = run_cli("--file", os.devnull)
        self.assertEqual(status, 0)
        self.assertIn("ADD_A", out)
        self.assertIn("PC = 0x01", out.split("After:")[1])

    def test_unsupported_opcode_exits_1(self):
        status, out, err = run_cli("85")
        self.assertEqual(status, 1)
        self.assertIn("Unsupported opcode 0b1000", err)
        self.assertNotIn("After:", out)

    def test_invalid_register_exits_2(self):
        status, _, err = run_cli("--a", "16")
        self.assertEqual(status, 2)
        self.assertIn("4-bit", err)

    def test_invalid_hex_exits_2(self):
        status, _, err = run_cli("zz")
        self.assertEqual(status, 2)
        self.assertIn("invalid ROM hex string", err)

    def test_rom_and_file_conflict(self):
        status, _, _ = run_cli("10", "--file", os.devnull)
        self.assertEqual(status, 2)


if __name__ == "__main__":
    unittest.main()
