#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Command line driver: exit codes, human and JSON output."""

import json
from pathlib import Path

from borrowck import ir
from borrowck.driver import main


def _write(tmp_path: Path, name: str, text: str) -> Path:
	path = tmp_path / name
	path.write_text(text)
	return path


def test_accepted_file_exits_zero(tmp_path: Path, capsys):
	path = _write(tmp_path, "ok.bir", "bind x;\nborrow r = &x;\nread r;\n")
	assert main([str(path)]) == 0
	assert capsys.readouterr().err == ""


def test_rejected_file_prints_human_diagnostics(tmp_path: Path, capsys):
	path = _write(tmp_path, "moved.bir", "bind x;\nbind y = move x;\nread x;\n")
	assert main([str(path)]) == 1
	err = capsys.readouterr().err
	assert f"{path}:3:1: error[E-USE-AFTER-MOVE]" in err
	assert "unit 'moved'" in err


def test_json_output(tmp_path: Path, capsys):
	path = _write(
		tmp_path,
		"prog.bir",
		"unit good:\nbind x;\nunit bad:\nbind mut x;\nborrow a = &mut x;\nborrow b = &x;\nread a;\n",
	)
	assert main([str(path), "--json"]) == 1
	payload = json.loads(capsys.readouterr().out)
	assert payload["exit_code"] == 1
	assert [u["unit"] for u in payload["units"]] == ["good", "bad"]
	assert [u["accepted"] for u in payload["units"]] == [True, False]
	(diag,) = payload["diagnostics"]
	assert diag["code"] == "E-CONFLICTING-BORROW"
	assert diag["unit"] == "bad"
	assert diag["place"] == "b"
	assert (diag["file"], diag["line"]) == (str(path), 6)


def test_json_input_file(tmp_path: Path, capsys):
	program = ir.Program(units=[ir.Unit("j", [ir.Bind("x"), ir.Consume("x"), ir.Read("x")])])
	path = _write(tmp_path, "prog.json", ir.program_to_json(program))
	assert main([str(path), "--json"]) == 1
	payload = json.loads(capsys.readouterr().out)
	(diag,) = payload["diagnostics"]
	assert diag["code"] == "E-USE-AFTER-MOVE"
	assert diag["file"] == str(path)
	assert diag["line"] is None


def test_fatal_unit_error(tmp_path: Path, capsys):
	path = _write(tmp_path, "open.bir", "{\nbind x;\n")
	assert main([str(path), "--json"]) == 1
	payload = json.loads(capsys.readouterr().out)
	(unit,) = payload["units"]
	assert unit["error"]["reason_code"] == "E-UNBALANCED-SCOPE"
	assert unit["diagnostics"] == []


def test_precise_flag(tmp_path: Path, capsys):
	path = _write(tmp_path, "nll.bir", "bind x;\nborrow r = &x;\nread r;\nbind y = move x;\n")
	assert main([str(path)]) == 1
	assert main([str(path), "--precise"]) == 0


def test_config_file_and_flag_override(tmp_path: Path, capsys):
	path = _write(tmp_path, "big.bir", "bind x;\nread x;\nread x;\n")
	config = _write(tmp_path, "cfg.json", '{"maxStatements": 2}')
	assert main([str(path), "--config", str(config)]) == 1
	assert "E-UNIT-TOO-LARGE" in capsys.readouterr().err
	assert main([str(path), "--config", str(config), "--max-statements", "3"]) == 0


def test_bad_config_exits_two(tmp_path: Path, capsys):
	path = _write(tmp_path, "ok.bir", "bind x;\n")
	config = _write(tmp_path, "cfg.json", '{"turbo": 1}')
	assert main([str(path), "--config", str(config)]) == 2
	assert "E-CONFIG" in capsys.readouterr().err


def test_unreadable_input_exits_two(tmp_path: Path, capsys):
	assert main([str(tmp_path / "missing.bir")]) == 2
	assert "cannot read input" in capsys.readouterr().err


def test_syntax_error_exits_two(tmp_path: Path, capsys):
	path = _write(tmp_path, "bad.bir", "bind x\n")
	assert main([str(path), "--json"]) == 2
	payload = json.loads(capsys.readouterr().out)
	assert payload["exit_code"] == 2
	assert "E-IR-SYNTAX" in payload["diagnostics"][0]["message"]


def test_multiple_files_and_jobs(tmp_path: Path, capsys):
	ok = _write(tmp_path, "a.bir", "bind x;\n")
	bad = _write(tmp_path, "b.bir", "declare x;\nread x;\n")
	assert main([str(ok), str(bad), "--jobs", "2", "--json"]) == 1
	payload = json.loads(capsys.readouterr().out)
	assert [u["unit"] for u in payload["units"]] == ["a", "b"]
	assert payload["diagnostics"][0]["code"] == "E-USE-OF-UNINITIALIZED"
