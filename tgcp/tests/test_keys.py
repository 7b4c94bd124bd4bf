from __future__ import annotations

import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tgcp.keys import KeyReader, decode_keys  # noqa: E402


class DecodeKeysTests(unittest.TestCase):
    def test_printable_and_control(self):
        self.assertEqual(decode_keys(b"ab\r\t\x7f\x03"), ["a", "b", "enter", "tab", "backspace", "ctrl-c"])

    def test_escape_sequences(self):
        data = b"\x1b[A\x1bOB\x1b[5~\x1b[24~\x1bOP\x1b[Z"
        self.assertEqual(decode_keys(data), ["up", "down", "pgup", "f12", "f1", "shift-tab"])

    def test_lone_escape(self):
        self.assertEqual(decode_keys(b"\x1b"), ["esc"])
        self.assertEqual(decode_keys(b"\x1bq"), ["esc", "q"])

    def test_unknown_sequence_is_skipped(self):
        self.assertEqual(decode_keys(b"\x1b[99xj"), ["j"])

    def test_utf8_and_unprintable(self):
        self.assertEqual(decode_keys("é\x01".encode()), ["é"])


class KeyReaderTests(unittest.TestCase):
    def test_inactive_reader_reads_nothing(self):
        reader = KeyReader()
        self.assertFalse(reader.active)
        self.assertEqual(reader.read(0), [])
        reader.suspend()
        self.assertFalse(reader.active)


if __name__ == "__main__":
    unittest.main()
