import logging

import pytest

from batching_rewriter import BatchingRewriter, apply_rewrites_to_bytes
from tls_edits import Edit


def test_two_insertions_in_one_pass():
    content = bytes(range(ord("a"), ord("a") + 26)) + b"0123"
    assert len(content) == 30

    out = apply_rewrites_to_bytes(content, [Edit(5, 0, "A"), Edit(20, 0, "B")])

    assert len(out) == 32
    assert out[5:6] == b"A"
    assert out[21:22] == b"B"
    assert out.replace(b"A", b"", 1).replace(b"B", b"", 1) == content


def test_replacement_consumes_length():
    assert apply_rewrites_to_bytes(b"int x = 1;", [Edit(8, 1, "42")]) == b"int x = 42;"


def test_no_rewrites_is_identity():
    assert apply_rewrites_to_bytes(b"static int x;", []) == b"static int x;"


def test_insertion_at_end_of_file():
    assert apply_rewrites_to_bytes(b"abc", [Edit(3, 0, "!")]) == b"abc!"


def test_replacement_text_is_utf8_encoded():
    assert apply_rewrites_to_bytes(b"ab", [Edit(1, 0, "é")]) == "aéb".encode("utf-8")


def test_out_of_bounds_rewrite_is_rejected():
    with pytest.raises(ValueError, match="out of bounds"):
        apply_rewrites_to_bytes(b"abc", [Edit(2, 5, "")])


def test_overlapping_rewrites_are_rejected():
    with pytest.raises(ValueError, match="overlaps"):
        apply_rewrites_to_bytes(b"abcdef", [Edit(1, 3, "X"), Edit(2, 0, "Y")])


def test_batching_rewriter_applies_on_exit(tmp_path, log):
    a = tmp_path / "a.c"
    a.write_bytes(b"static int x;\nint y;\n")
    with BatchingRewriter(log) as rewriter:
        rewriter.replace_rewrites(
            {a.as_posix(): [Edit(14, 0, "__thread "), Edit(7, 0, "__thread ")]}
        )
    assert a.read_bytes() == b"static __thread int x;\n__thread int y;\n"
    assert rewriter.failures == {}


def test_batching_rewriter_writes_nothing_when_block_raises(tmp_path, log):
    a = tmp_path / "a.c"
    a.write_bytes(b"int y;\n")
    with pytest.raises(RuntimeError):
        with BatchingRewriter(log) as rewriter:
            rewriter.replace_rewrites({a.as_posix(): [Edit(0, 0, "__thread ")]})
            raise RuntimeError("boom")
    assert a.read_bytes() == b"int y;\n"


def test_one_failing_file_does_not_block_others(tmp_path, log, caplog):
    good = tmp_path / "good.c"
    good.write_bytes(b"int y;\n")
    missing = tmp_path / "missing.c"
    short = tmp_path / "short.c"
    short.write_bytes(b"x")

    rewriter = BatchingRewriter(log)
    rewriter.replace_rewrites({
        missing.as_posix(): [Edit(0, 0, "__thread ")],
        short.as_posix(): [Edit(10, 0, "__thread ")],
        good.as_posix(): [Edit(0, 0, "__thread ")],
    })
    with caplog.at_level(logging.INFO):
        failures = rewriter.apply_rewrites()

    assert set(failures) == {missing.as_posix(), short.as_posix()}
    assert isinstance(failures[missing.as_posix()], OSError)
    assert good.read_bytes() == b"__thread int y;\n"
    assert short.read_bytes() == b"x"
    assert "rewrote" in caplog.text
    assert "error rewriting" in caplog.text
