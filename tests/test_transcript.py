"""Tests for transcript parsing, structure stripping and truncation."""
import json

import pytest

from conftest import make_record
from seed_tools.transcript import (
    PLACEHOLDER,
    normalize_transcript,
    parse_transcript,
    read_transcript,
    strip_structured_content,
    truncate_for_extraction,
)


class TestParseTranscript:
    """Tests for JSONL -> conversational text."""

    def test_user_and_assistant_in_order(self):
        raw = "\n".join([
            make_record("user", "How should I structure the tests?"),
            make_record("assistant", [{"type": "text", "text": "Use a tests/ directory."}]),
        ])
        assert parse_transcript(raw) == (
            "How should I structure the tests?\n\nUse a tests/ directory."
        )

    def test_tool_blocks_excluded(self):
        raw = "\n".join([
            make_record("assistant", [
                {"type": "text", "text": "Reading the file."},
                {"type": "tool_use", "name": "Read", "input": {"file_path": "/tmp/x"}},
                {"type": "text", "text": "Done reading."},
            ]),
            make_record("user", [
                {"type": "tool_result", "content": "file contents here"},
            ]),
        ])
        result = parse_transcript(raw)
        assert result == "Reading the file.\nDone reading."
        assert "file contents" not in result

    def test_other_record_types_skipped(self):
        raw = "\n".join([
            json.dumps({"type": "system", "message": {"content": "system prompt"}}),
            json.dumps({"type": "progress", "data": {}}),
            make_record("user", "Only this."),
        ])
        assert parse_transcript(raw) == "Only this."

    def test_malformed_lines_skipped(self):
        raw = "\n".join([
            "{not json",
            make_record("user", "First message."),
            "",
            "[1, 2, 3]",
            '{"type": "assistant", "message": "not a dict"}',
            make_record("assistant", "Second message."),
        ])
        assert parse_transcript(raw) == "First message.\n\nSecond message."

    def test_bytes_input(self):
        raw = make_record("user", "Bytes work too.").encode("utf-8")
        assert parse_transcript(raw) == "Bytes work too."

    def test_empty_input(self):
        assert parse_transcript("") == ""
        assert parse_transcript(b"") == ""

    def test_only_garbage_returns_empty(self):
        assert parse_transcript("garbage\nmore garbage\n{{{") == ""

    def test_empty_content_contributes_nothing(self):
        raw = "\n".join([
            make_record("user", "   "),
            make_record("assistant", []),
            make_record("user", "Real text."),
        ])
        assert parse_transcript(raw) == "Real text."


class TestStripStructuredContent:
    """Tests for removing code, tool envelopes and large JSON."""

    def test_fenced_code_block_replaced(self):
        text = "Before the code.\n```python\n# I learned this trick\nprint(1)\n```\nAfter the code."
        result = strip_structured_content(text)
        assert "```" not in result
        assert "I learned" not in result
        assert "Before the code." in result
        assert "After the code." in result
        assert PLACEHOLDER in result

    def test_unterminated_fence_removed(self):
        text = "Intro sentence.\n```bash\necho note to self"
        result = strip_structured_content(text)
        assert "```" not in result
        assert "note to self" not in result
        assert "Intro sentence." in result

    def test_tool_envelope_replaced(self):
        text = ('Checking now. <function_calls><invoke name="Bash">'
                '<parameter name="command">ls</parameter></invoke></function_calls> Found it.')
        result = strip_structured_content(text)
        assert "invoke" not in result
        assert "Checking now." in result
        assert "Found it." in result

    def test_namespaced_tool_envelope_replaced(self):
        text = "Start <ns:function_calls><ns:invoke>x</ns:invoke></ns:function_calls> end"
        result = strip_structured_content(text)
        assert "invoke" not in result

    def test_line_numbered_dump_removed(self):
        text = "Here is the file:\n     1→import os\n     2→import sys\n    10│x = 1\nThat is all."
        result = strip_structured_content(text)
        assert "import os" not in result
        assert "x = 1" not in result
        assert "Here is the file:" in result
        assert "That is all." in result

    def test_small_inline_json_kept(self):
        text = 'Set it to {"retries": 3} and move on.'
        assert strip_structured_content(text) == text

    def test_large_inline_json_replaced(self):
        blob = json.dumps({"key": "v" * 250, "other": {"nested": True}})
        text = f"Response was {blob} which is big."
        result = strip_structured_content(text)
        assert "vvvv" not in result
        assert PLACEHOLDER in result
        assert result.startswith("Response was")

    def test_blank_lines_collapsed(self):
        assert strip_structured_content("a\n\n\n\n\nb") == "a\n\nb"

    def test_empty(self):
        assert strip_structured_content("") == ""


class TestTruncateForExtraction:
    """Tests for tail truncation on paragraph boundaries."""

    def test_identity_when_short(self):
        text = "Short text.\n\nTwo paragraphs."
        assert truncate_for_extraction(text, 1000) is text

    def test_identity_at_exact_limit(self):
        text = "x" * 100
        assert truncate_for_extraction(text, 100) == text

    def test_keeps_tail_from_paragraph_boundary(self):
        paragraphs = [f"Paragraph {i}. " + "word " * 20 for i in range(100)]
        text = "\n\n".join(paragraphs)
        result = truncate_for_extraction(text, 1000)
        assert len(result) <= 1000
        assert text.endswith(result)
        assert result.startswith("Paragraph ")
        assert result.rstrip().endswith(paragraphs[-1].rstrip())

    def test_falls_back_to_line_boundary(self):
        text = "".join(f"line {i} of the log\n" for i in range(200))
        result = truncate_for_extraction(text, 500)
        assert len(result) <= 500
        assert text.endswith(result)
        assert result.startswith("line ")

    def test_window_opening_on_paragraph_kept_whole(self):
        text = "A" * 10 + "\n\n" + "B" * 20 + "\n\n" + "C" * 20
        assert truncate_for_extraction(text, 42) == "B" * 20 + "\n\n" + "C" * 20

    def test_window_opening_on_line_kept_whole(self):
        text = "A" * 10 + "\n" + "B" * 20 + "\n" + "C" * 20
        assert truncate_for_extraction(text, 41) == "B" * 20 + "\n" + "C" * 20

    def test_no_boundary_keeps_raw_tail(self):
        text = "a" * 60 + "b" * 40
        assert truncate_for_extraction(text, 50) == "a" * 10 + "b" * 40

    def test_large_transcript_tail(self):
        paragraph = "We settled on pytest fixtures for the temp dirs. " * 4
        text = "\n\n".join([paragraph.strip()] * 1200)
        text = text[-229000:]
        assert len(text) == 229000

        result = truncate_for_extraction(text, 50000)
        assert len(result) <= 50000
        assert text.endswith(result)
        assert result.startswith("We settled")


class TestNormalizeTranscript:
    """Tests for the full normalization pipeline."""

    def test_parse_strip_truncate(self):
        raw = "\n".join([
            make_record("user", "Please fix the build."),
            make_record("assistant", [
                {"type": "text", "text": "Fixed.\n```\nI learned nothing here\n```\nThe lesson is to pin versions."},
            ]),
        ])
        result = normalize_transcript(raw, 50000)
        assert "Please fix the build." in result
        assert "The lesson is to pin versions." in result
        assert "I learned nothing here" not in result
        assert "```" not in result

    def test_respects_max_chars(self):
        lines = [make_record("assistant", f"Block {i}. " + "filler " * 30) for i in range(200)]
        result = normalize_transcript("\n".join(lines), 2000)
        assert len(result) <= 2000
        assert result.startswith("Block ")


class TestReadTranscript:
    """Tests for reading transcript files."""

    def test_reads_file(self, transcript_file):
        path = transcript_file([make_record("user", "hello")])
        assert "hello" in read_transcript(str(path))

    def test_missing_file_returns_empty(self, tmp_path):
        assert read_transcript(str(tmp_path / "missing.jsonl")) == ""
