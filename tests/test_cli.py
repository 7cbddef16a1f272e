"""Tests for the credcache command-line host."""

import logging

import pytest
from click.testing import CliRunner

from credcache.cache import TOKEN_FILENAME
from credcache.cli import CredcacheApp, cli


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger("credcache")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def store_dir(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def run(tmp_path, store_dir):
    runner = CliRunner()
    base = ["--config", str(tmp_path / "config.yaml"), "--root", str(store_dir)]

    def _run(*args):
        return runner.invoke(cli, base + list(args))

    return _run


def _store(run, *extra):
    return run(
        "store", "access-token-1234", "refresh-token-5678",
        "--user-id", "u1", "--username", "alice",
        "-p", "read", "-p", "write", *extra,
    )


class TestStore:
    def test_store_writes_token_file(self, run, store_dir):
        result = _store(run)
        assert result.exit_code == 0, result.output
        assert "Stored credential" in result.output
        assert (store_dir / TOKEN_FILENAME).exists()

    def test_store_rejects_empty_user_id(self, run, store_dir):
        result = run("store", "tok", "ref", "--user-id", "", "--username", "alice")
        assert result.exit_code == 2
        assert not (store_dir / TOKEN_FILENAME).exists()

    def test_store_requires_identity(self, run):
        result = run("store", "tok", "ref")
        assert result.exit_code == 2

    def test_unusable_root(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        result = CliRunner().invoke(cli, [
            "--config", str(tmp_path / "config.yaml"), "--root", str(blocker / "sub"),
            "store", "tok", "ref", "-u", "u1", "-n", "alice",
        ])
        assert result.exit_code == 1
        assert "err" in result.output


class TestToken:
    def test_token_is_masked(self, run):
        _store(run)
        result = run("token")
        assert result.exit_code == 0
        assert "********1234" in result.output
        assert "********5678" in result.output
        assert "access-token" not in result.output

    def test_token_reveal(self, run):
        _store(run)
        result = run("token", "--reveal")
        assert result.exit_code == 0
        assert result.output.splitlines() == ["access-token-1234", "refresh-token-5678"]

    def test_token_absent(self, run):
        result = run("token")
        assert result.exit_code == 1
        assert "No cached credential" in result.output

    def test_token_corrupt(self, run, store_dir):
        store_dir.mkdir()
        (store_dir / TOKEN_FILENAME).write_text("garbage", encoding="utf-8")
        result = run("token")
        assert result.exit_code == 1
        assert "corrupt" in result.output


class TestQueries:
    def test_status_signed_in(self, run):
        _store(run)
        result = run("status")
        assert result.exit_code == 0
        assert "signed in" in result.output
        assert "alice" in result.output
        assert "read, write" in result.output

    def test_status_signed_out(self, run):
        result = run("status")
        assert result.exit_code == 0
        assert "signed out" in result.output

    def test_whoami(self, run):
        _store(run)
        result = run("whoami")
        assert result.exit_code == 0
        assert result.output.strip() == "u1\talice"

    def test_whoami_signed_out(self, run):
        result = run("whoami")
        assert result.exit_code == 1
        assert "Not signed in" in result.output

    def test_permissions(self, run):
        _store(run)
        result = run("permissions")
        assert result.exit_code == 0
        assert result.output.splitlines() == ["read", "write"]

    def test_permissions_signed_out(self, run):
        result = run("permissions")
        assert result.exit_code == 0
        assert result.output == ""


class TestCheck:
    def test_all_granted(self, run):
        _store(run)
        result = run("check", "read", "write")
        assert result.exit_code == 0
        assert "granted" in result.output

    def test_denied(self, run):
        _store(run)
        result = run("check", "read", "admin")
        assert result.exit_code == 1
        assert "denied" in result.output

    def test_any(self, run):
        _store(run)
        assert run("check", "--any", "admin", "write").exit_code == 0
        assert run("check", "--any", "admin").exit_code == 1

    def test_signed_out(self, run):
        assert run("check", "read").exit_code == 1


class TestClearAndSync:
    def test_clear(self, run, store_dir):
        _store(run)
        result = run("clear")
        assert result.exit_code == 0
        assert not (store_dir / TOKEN_FILENAME).exists()
        assert run("whoami").exit_code == 1

    def test_clear_when_empty(self, run):
        assert run("clear").exit_code == 0
        assert run("clear").exit_code == 0

    def test_sync_permissions(self, run):
        _store(run)
        result = run("sync-permissions", "-p", "admin")
        assert result.exit_code == 0
        assert run("permissions").output.splitlines() == ["admin"]
        assert run("token", "--reveal").output.splitlines()[0] == "access-token-1234"

    def test_sync_permissions_without_record(self, run):
        result = run("sync-permissions", "-p", "admin")
        assert result.exit_code == 1


class TestConfigCommand:
    def test_shows_storage_root(self, run, store_dir):
        result = run("config")
        assert result.exit_code == 0
        assert f"Storage root: {store_dir}" in result.output

    def test_set_root(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        runner = CliRunner(env={"CREDCACHE_ROOT": ""})
        result = runner.invoke(cli, ["--config", str(config_path), "config", "--set-root", str(tmp_path / "vault")])
        assert result.exit_code == 0
        assert f"Storage root: {tmp_path / 'vault'}" in result.output


def test_injected_app_clock(tmp_path):
    clock_value = [1_700_000_000]
    app = CredcacheApp(
        config_path=str(tmp_path / "config.yaml"),
        root=str(tmp_path / "store"),
        clock=lambda: clock_value[0],
    )
    runner = CliRunner()

    assert runner.invoke(cli, ["store", "tok", "ref", "-u", "u1", "-n", "alice"], obj=app).exit_code == 0
    assert runner.invoke(cli, ["whoami"], obj=app).exit_code == 0

    clock_value[0] += 1800
    result = runner.invoke(cli, ["status"], obj=app)
    assert "signed out" in result.output
    assert runner.invoke(cli, ["token"], obj=app).exit_code == 1
