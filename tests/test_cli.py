"""Tests for the vers CLI: argument parsing, command plumbing and exit codes."""

import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vers_cli.commands.common import exit_code_for
from vers_cli.commands.connect import raw_terminal
from vers_cli.commands.copy import DOWNLOAD, UPLOAD, detect_direction
from vers_cli.commands.execute import split_target_and_command
from vers_cli.ssh import ExitError, TransferError
from vers_cli.vers_cli import build_parser, main
from vers_cli.vm import ConnectTarget


def _fake_client(**methods):
    client = MagicMock()
    client.hostname = "vm-1.vm.vers.sh"
    for name, mock in methods.items():
        setattr(client, name, mock)
    return client


def _run_main(argv, client):
    target = ConnectTarget(vm_id="vm-1", host="vm-1", key_path="/tmp/vm-1.key")
    resolve = AsyncMock(return_value=(client, target))
    with patch("vers_cli.vers_cli.setup_cli_logging"), \
         patch("vers_cli.commands.execute.resolve_client", resolve), \
         patch("vers_cli.commands.copy.resolve_client", resolve), \
         patch("vers_cli.commands.connect.resolve_client", resolve):
        main(argv)
    return resolve


# ── Parsing ─────────────────────────────────────────────────────


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_parser_copy_recursive_flag():
    args = build_parser().parse_args(["copy", "-r", "vm-1", "./src", "/dst"])
    assert args.recursive
    assert args.paths == ["vm-1", "./src", "/dst"]


def test_parser_connect_target_optional():
    assert build_parser().parse_args(["connect"]).target is None
    assert build_parser().parse_args(["connect", "dev"]).target == "dev"


def test_parser_verbose_flag():
    assert build_parser().parse_args(["--verbose", "connect"]).verbose


# ── execute: target detection ───────────────────────────────────


def test_split_explicit_separator():
    assert split_target_and_command(["dev", "--", "ls", "-la"], aliases={}) == ("dev", ["ls", "-la"])


def test_split_separator_without_target():
    assert split_target_and_command(["--", "uname", "-a"], aliases={}) == (None, ["uname", "-a"])


def test_split_vm_id_prefix():
    assert split_target_and_command(["vm-123", "ls"], aliases={}) == ("vm-123", ["ls"])


def test_split_known_alias():
    assert split_target_and_command(["dev", "ls"], aliases={"dev": "vm-1"}) == ("dev", ["ls"])


def test_split_plain_command_uses_head():
    assert split_target_and_command(["ls", "-la"], aliases={}) == (None, ["ls", "-la"])


def test_split_single_vm_looking_token_is_command():
    assert split_target_and_command(["vm-stat"], aliases={}) == (None, ["vm-stat"])


def test_split_rejects_two_targets():
    with pytest.raises(ValueError, match="at most one VM"):
        split_target_and_command(["a", "b", "--", "ls"], aliases={})


# ── copy: direction detection ───────────────────────────────────


def test_direction_absolute_source_relative_dest_downloads():
    assert detect_direction("/root/out.log", "./out.log") == DOWNLOAD


def test_direction_relative_source_absolute_dest_uploads():
    assert detect_direction("./file.txt", "/root/") == UPLOAD


def test_direction_ambiguous_existing_local_source_uploads(tmp_path):
    src = tmp_path / "exists.txt"
    src.write_text("x")
    assert detect_direction(str(src), "/root/exists.txt") == UPLOAD


def test_direction_ambiguous_missing_local_source_downloads(tmp_path):
    assert detect_direction(str(tmp_path / "missing"), "/tmp/missing") == DOWNLOAD


def test_direction_expands_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    (tmp_path / "notes.txt").write_text("x")
    assert detect_direction("~/notes.txt", "notes-copy.txt") == UPLOAD


# ── exit codes ──────────────────────────────────────────────────


def test_exit_code_mirrors_remote_status():
    assert exit_code_for(ExitError(42)) == 42


def test_exit_code_for_signal_is_255():
    assert exit_code_for(ExitError(-1, signal="KILL")) == 255


# ── handlers ────────────────────────────────────────────────────


def test_execute_joins_tokens_and_succeeds():
    execute = AsyncMock(return_value=None)
    _run_main(["execute", "vm-1", "--", "echo", "a", "b"], _fake_client(execute=execute))
    assert execute.await_args.args[0] == "echo a b"


def test_execute_exits_with_remote_status():
    execute = AsyncMock(side_effect=ExitError(3, command="false"))
    with pytest.raises(SystemExit) as exc:
        _run_main(["execute", "vm-1", "false"], _fake_client(execute=execute))
    assert exc.value.code == 3


def test_execute_broken_pipe_exits_quietly(caplog):
    execute = AsyncMock(side_effect=BrokenPipeError(32, "Broken pipe"))
    with patch("vers_cli.commands.execute._silence_stdout") as silence, \
         pytest.raises(SystemExit) as exc:
        _run_main(["execute", "vm-1", "--", "cat", "big"], _fake_client(execute=execute))
    assert exc.value.code == 1
    silence.assert_called_once()
    assert "Error" not in caplog.text


def test_execute_without_command_fails():
    with pytest.raises(SystemExit) as exc:
        _run_main(["execute", "--"], _fake_client())
    assert exc.value.code == 1


def test_execute_uses_head_when_no_target():
    execute = AsyncMock(return_value=None)
    resolve = _run_main(["execute", "uptime"], _fake_client(execute=execute))
    assert resolve.await_args.args[0] is None


def test_copy_upload_passes_recursive(tmp_path):
    src = tmp_path / "dir"
    src.mkdir()
    upload = AsyncMock(return_value=None)
    _run_main(["copy", "-r", "vm-1", str(src), "/root/dir"], _fake_client(upload=upload))
    upload.assert_awaited_once_with(str(src), "/root/dir", recursive=True)


def test_copy_download_uses_head():
    download = AsyncMock(return_value=None)
    resolve = _run_main(["copy", "/root/out.log", "out.log"], _fake_client(download=download))
    download.assert_awaited_once_with("/root/out.log", "out.log", recursive=False)
    assert resolve.await_args.args[0] is None


def test_copy_failure_exits_1():
    download = AsyncMock(side_effect=TransferError("source is a directory, use recursive mode"))
    with pytest.raises(SystemExit) as exc:
        _run_main(["copy", "vm-1", "/root/dir", "dir"], _fake_client(download=download))
    assert exc.value.code == 1


def test_copy_wrong_arity_exits_1():
    with pytest.raises(SystemExit) as exc:
        _run_main(["copy", "a", "b", "c", "d"], _fake_client())
    assert exc.value.code == 1


def test_connect_remote_exit_status_is_propagated():
    interactive = AsyncMock(side_effect=ExitError(130))
    with patch("vers_cli.commands.connect.sys.stdin", io.StringIO()):
        with pytest.raises(SystemExit) as exc:
            _run_main(["connect", "vm-1"], _fake_client(interactive=interactive))
    assert exc.value.code == 130


# ── raw terminal ────────────────────────────────────────────────


def test_raw_terminal_is_noop_for_non_terminal():
    with raw_terminal(io.StringIO()):
        pass


def test_cli_help_runs(run_cli):
    rc, stdout, _ = run_cli("--help")
    assert rc == 0
    assert "connect" in stdout
    assert "execute" in stdout
    assert "copy" in stdout
