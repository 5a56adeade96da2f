import tempfile
import unittest
from pathlib import Path

from spuniverse.lang import (
    Assignment,
    Call,
    FunctionDefinition,
    Return,
    Unknown,
    action_from_json,
    action_to_json,
    parse_file,
    parse_line,
    parse_source,
)


SAMPLE_BLOCK = """
def add(a, b):
    return a + b

x = 5
print(x)
console.log(x, y)
math.sqrt(16)
just some words
"""


class ParseTests(unittest.TestCase):
    def test_assignment_then_print(self) -> None:
        actions = parse_source("x = 5\nprint(x)")
        self.assertEqual(actions, [Assignment("x", "5"), Call("print", ["x"])])

    def test_one_action_per_non_blank_line_in_order(self) -> None:
        actions = parse_source(SAMPLE_BLOCK)
        lines = [line.strip() for line in SAMPLE_BLOCK.splitlines() if line.strip()]
        self.assertEqual(len(actions), len(lines))
        self.assertEqual(
            [type(a) for a in actions],
            [FunctionDefinition, Return, Assignment, Call, Call, Call, Unknown],
        )
        self.assertEqual(actions[-1].code, "just some words")

    def test_parsing_is_deterministic(self) -> None:
        self.assertEqual(parse_source(SAMPLE_BLOCK), parse_source(SAMPLE_BLOCK))

    def test_function_definition(self) -> None:
        action = parse_line("def add(a,  b ):")
        self.assertEqual(action, FunctionDefinition("add", ["a", "b"], "python"))
        self.assertEqual(parse_line("def noop():").params, [])

    def test_malformed_def_falls_through(self) -> None:
        self.assertIsInstance(parse_line("def broken"), Unknown)
        self.assertIsInstance(parse_line("def x = 3"), Assignment)

    def test_return(self) -> None:
        self.assertEqual(parse_line("return a + b"), Return("a + b"))
        self.assertEqual(parse_line("return"), Return(""))
        self.assertIsInstance(parse_line("returned = 1"), Assignment)

    def test_assignment_splits_on_first_equals(self) -> None:
        self.assertEqual(parse_line("a = b = c"), Assignment("a", "b = c"))
        self.assertEqual(parse_line("flag == other"), Assignment("flag", "= other"))

    def test_assignment_wins_over_call(self) -> None:
        action = parse_line("y = add(1, 2)")
        self.assertEqual(action, Assignment("y", "add(1, 2)"))

    def test_call_shapes(self) -> None:
        self.assertEqual(parse_line("add(1, 2)"), Call("add", ["1", "2"], "javascript"))
        self.assertEqual(parse_line("ping()"), Call("ping", [""]))
        self.assertEqual(parse_line("console.log(hi)"), Call("console.log", ["hi"]))

    def test_blank_lines_dropped_and_comments_not_special(self) -> None:
        actions = parse_source("\n\n   \n# note\n")
        self.assertEqual(actions, [Unknown("# note")])

    def test_parse_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "prog.py"
            src.write_text("x = 1\r\nprint(x)\r\n", encoding="utf-8")
            self.assertEqual(parse_file(src), [Assignment("x", "1"), Call("print", ["x"])])


class ActionJsonTests(unittest.TestCase):
    def test_wire_shape(self) -> None:
        self.assertEqual(
            action_to_json(FunctionDefinition("add", ["a", "b"])),
            {"type": "function_definition", "details": {"name": "add", "params": ["a", "b"], "function": "add"}, "lang": "python"},
        )
        self.assertEqual(
            action_to_json(Call("print", ["x"])),
            {"type": "call", "details": {"function": "print", "args": ["x"]}, "lang": "javascript"},
        )

    def test_from_json_rebuilds_every_kind(self) -> None:
        for action in parse_source(SAMPLE_BLOCK):
            self.assertEqual(action_from_json(action_to_json(action)), action)

    def test_unreadable_records_become_unknown(self) -> None:
        self.assertIsInstance(action_from_json({"type": "assignment", "details": {}}), Unknown)
        self.assertIsInstance(action_from_json({"type": "loop"}), Unknown)
        self.assertIsInstance(action_from_json("nonsense"), Unknown)


if __name__ == "__main__":
    unittest.main()
