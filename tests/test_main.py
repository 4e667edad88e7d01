import json

from click.testing import CliRunner

import main


def invoke(*args: str):
    return CliRunner().invoke(main.cli, list(args), catch_exceptions=False)


def test_rewrite_globals_requires_sources(tmp_codebase):
    result = invoke("rewrite-globals", "-r", tmp_codebase.as_posix())
    assert result.exit_code == 1
    assert "No source files given" in result.output


def test_dry_run_lists_insertions_without_writing(tmp_codebase, write_c):
    path = write_c("t.c", "int g;\nstatic int x;\n")

    result = invoke(
        "rewrite-globals", "-c", path.as_posix(), "-r", tmp_codebase.as_posix(), "--dry-run"
    )

    assert result.exit_code == 0, result.output
    assert "t.c:1:1: insert '__thread '" in result.stdout
    assert "t.c:2:8: insert '__thread '" in result.stdout
    assert path.read_text() == "int g;\nstatic int x;\n"


def test_rewrite_twice_is_the_same_as_once(tmp_codebase, write_c):
    source = "int g;\nstatic const int k = 1;\nvoid f(void) { static char *s; int l; }\n"
    a = write_c("a.c", source)
    b = write_c("b.c", "extern int g;\nint no_such_variable;\n")
    args = ["rewrite-globals", "-c", a.as_posix(), "-c", b.as_posix()]
    args += ["-r", tmp_codebase.as_posix(), "-j", "2"]

    assert invoke(*args).exit_code == 0
    expected_a = (
        "__thread int g;\nstatic const int k = 1;\n"
        "void f(void) { static __thread char *s; int l; }\n"
    )
    expected_b = "extern __thread int g;\nint no_such_variable;\n"
    assert a.read_text() == expected_a
    assert b.read_text() == expected_b

    assert invoke(*args).exit_code == 0
    assert a.read_text() == expected_a
    assert b.read_text() == expected_b


def test_sources_and_includes_from_compdb(tmp_codebase, write_c):
    write_c("inc/shared.h", "extern int counter;\n")
    main_c = write_c("src/main.c", '#include "shared.h"\nint counter;\n')
    compdb = tmp_codebase / "compile_commands.json"
    compdb.write_text(
        json.dumps([
            {
                "directory": (tmp_codebase / "src").as_posix(),
                "file": "main.c",
                "arguments": ["cc", "-I../inc", "-c", "main.c", "-o", "main.o"],
            }
        ]),
        encoding="utf-8",
    )

    result = invoke("rewrite-globals", "--compdb", compdb.as_posix(), "-r", tmp_codebase.as_posix())

    assert result.exit_code == 0, result.output
    assert main_c.read_text() == '#include "shared.h"\n__thread int counter;\n'
    assert (tmp_codebase / "inc" / "shared.h").read_text() == "extern __thread int counter;\n"


def test_unloadable_libclang_fails_the_run_without_writing(tmp_codebase, write_c, tmp_path):
    path = write_c("t.c", "int g;\n")
    missing_lib = tmp_path / "nonexistent" / "libclang.so"

    result = CliRunner().invoke(
        main.cli,
        ["rewrite-globals", "-c", path.as_posix(), "-r", tmp_codebase.as_posix(), "-j", "1"],
        env={"TLSIFY_LIBCLANG_PATH": missing_lib.as_posix()},
        catch_exceptions=False,
    )

    assert result.exit_code == 1
    assert "no files were modified" in result.output
    assert path.read_text() == "int g;\n"


def test_unstartable_worker_is_reported(tmp_codebase, write_c, monkeypatch, tmp_path):
    path = write_c("t.c", "int g;\n")
    missing = (tmp_path / "no-such-interpreter").as_posix()
    monkeypatch.setattr(
        main.tls_worker_pool, "default_worker_command", lambda log_level: [missing]
    )

    result = invoke("rewrite-globals", "-c", path.as_posix(), "-r", tmp_codebase.as_posix())

    assert result.exit_code == 1
    assert "could not start worker" in result.output
    assert "no files were modified" in result.output
    assert path.read_text() == "int g;\n"
