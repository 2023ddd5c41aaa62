"""
Tests for hunk extraction.

Run with: pytest tests/
"""

from diffreview.diff_parser import parse_changed_ranges, parse_hunk_header, reconstruct_files
from diffreview.hunks import classify_snippet, extract_all_hunks, extract_hunks
from diffreview.models import ChangedRange, ReconstructedFile


def _file_with_function_at_line_10():
    lines = [f"// line {i}" for i in range(1, 21)]
    lines[9:15] = [
        "function foo(a: number) {",
        "  const doubled = a * 2;",
        "  if (doubled > 10) {",
        "    return doubled;",
        "  }",
        "}",
    ]
    return ReconstructedFile(filename="a.ts", content="\n".join(lines))


def test_function_hunk_named_foo():
    """A function added at lines 10-15 yields one function hunk named foo."""
    changed = parse_hunk_header("@@ -9,0 +10,6 @@").model_copy(update={"file": "a.ts"})
    hunks = extract_hunks(_file_with_function_at_line_10(), [changed])

    assert len(hunks) == 1
    assert hunks[0].type == "function"
    assert hunks[0].function_name == "foo"
    assert (hunks[0].start_line, hunks[0].end_line) == (5, 20)


def test_window_clamped_to_file():
    """Margins never reach before line 1 or past the last line."""
    file = ReconstructedFile(filename="b.ts", content="a\nb\nc")
    hunks = extract_hunks(file, [ChangedRange(file="b.ts", start_line=1, end_line=2)], margin=5)
    assert (hunks[0].start_line, hunks[0].end_line) == (1, 3)
    assert hunks[0].content == "a\nb\nc"


def test_function_hunk_from_unified_diff():
    """Ranges, rebuilt files and hunks agree on post-change line numbers."""
    diff = (
        "diff --git a/a.ts b/a.ts\n"
        "index 1111111..2222222 100644\n"
        "--- a/a.ts\n"
        "+++ b/a.ts\n"
        "@@ -9,0 +10,6 @@\n"
        "+function foo(a: number) {\n"
        "+  const doubled = a * 2;\n"
        "+  if (doubled > 10) {\n"
        "+    return doubled;\n"
        "+  }\n"
        "+}"
    )
    ranges = parse_changed_ranges(diff)
    hunks = extract_all_hunks(reconstruct_files(diff), ranges)

    assert [(r.start_line, r.end_line) for r in ranges["a.ts"]] == [(10, 15)]
    assert len(hunks) == 1
    assert hunks[0].type == "function"
    assert hunks[0].function_name == "foo"
    assert (hunks[0].start_line, hunks[0].end_line) == (5, 15)
    assert hunks[0].content.split("\n")[5] == "function foo(a: number) {"


def test_window_clamped_when_range_starts_past_end():
    """A range beyond the last line still yields a window inside [1, line_count]."""
    file = ReconstructedFile(filename="b.ts", content="a\nb\nc")
    hunks = extract_hunks(file, [ChangedRange(file="b.ts", start_line=41, end_line=46)], margin=5)

    assert 1 <= hunks[0].start_line <= hunks[0].end_line <= 3
    assert hunks[0].content == "c"


def test_zero_ranges_zero_hunks():
    """Files without changed ranges produce no hunks."""
    file = _file_with_function_at_line_10()
    assert extract_hunks(file, []) == []
    assert extract_all_hunks([file], {}) == []


def test_extract_all_only_uses_matching_files():
    """Ranges are looked up by filename."""
    file = _file_with_function_at_line_10()
    ranges = {"other.ts": [ChangedRange(file="other.ts", start_line=1, end_line=1)]}
    assert extract_all_hunks([file], ranges) == []


def test_classify_class():
    """Class declarations win over functions and keep the class name."""
    hunk_type, function_name, class_name = classify_snippet("class Foo {\n  bar() {\n  }\n}")
    assert hunk_type == "class"
    assert class_name == "Foo"
    assert function_name is None


def test_classify_method():
    """A bare NAME(...) { block is a method."""
    assert classify_snippet("  render(props) {\n    return 1;\n  }") == ("method", "render", None)


def test_classify_interface():
    """Interfaces are reported with their name."""
    assert classify_snippet("interface Props {\n  a: string;\n}") == ("interface", None, "Props")


def test_classify_python_def():
    """Python functions are recognised too."""
    hunk_type, function_name, _ = classify_snippet("def handler(event):\n    return event")
    assert (hunk_type, function_name) == ("function", "handler")


def test_classify_arrow_function():
    """Object-literal arrow functions are functions."""
    hunk_type, function_name, _ = classify_snippet("  onClick: (event) => {")
    assert (hunk_type, function_name) == ("function", "onClick")


def test_control_flow_is_not_a_method():
    """if/for blocks fall through to other."""
    assert classify_snippet("if (ready) {\n  go();\n}") == ("other", None, None)
