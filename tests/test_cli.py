from pathlib import Path

import pytest

import gitbook_mdx.cli as cli_module
from gitbook_mdx.cli import build_config, main, parse_args
from gitbook_mdx.config import BasicAuth, MirrorConfig
from gitbook_mdx.errors import PersistenceError
from gitbook_mdx.models import MirrorResult


def test_defaults():
    args = parse_args(["https://docs.example.com"])
    assert args.url == "https://docs.example.com"
    assert args.output == Path("output")
    assert args.all_pages is False
    assert args.download_images is True
    assert args.concurrency == 4
    assert args.timeout == 30.0
    assert args.username is None


def test_build_config_maps_flags(tmp_path):
    args = parse_args(
        [
            "https://docs.example.com/guide",
            "--output",
            str(tmp_path / "mirror"),
            "--all",
            "--no-images",
            "--username",
            "reader",
            "--password",
            "secret",
            "--concurrency",
            "8",
            "--timeout",
            "5",
            "--headful",
        ]
    )
    config = build_config(args)
    assert config.output_root == (tmp_path / "mirror").resolve()
    assert config.all_pages is True
    assert config.download_images is False
    assert config.auth == BasicAuth("reader", "secret")
    assert config.concurrency == 8
    assert config.navigation_timeout == 5.0
    assert config.headless is False


def test_username_requires_password():
    with pytest.raises(SystemExit):
        parse_args(["https://docs.example.com", "--username", "reader"])


def test_concurrency_must_be_positive():
    with pytest.raises(SystemExit):
        parse_args(["https://docs.example.com", "--concurrency", "0"])


def test_mirror_config_rejects_zero_concurrency(tmp_path):
    with pytest.raises(ValueError):
        MirrorConfig(output_root=tmp_path, concurrency=0)


def test_main_runs_mirror(monkeypatch, tmp_path):
    calls = []

    async def fake_mirror(url, config, engine=None):
        calls.append((url, config))
        return MirrorResult(title="Book", index_path=config.output_root / "README.md", skipped=1)

    monkeypatch.setattr(cli_module, "mirror_site", fake_mirror)
    assert main(["https://docs.example.com", "--output", str(tmp_path)]) == 0
    assert calls[0][0] == "https://docs.example.com"
    assert calls[0][1].output_root == tmp_path.resolve()


def test_main_reports_persistence_failure(monkeypatch, tmp_path):
    async def failing_mirror(url, config, engine=None):
        raise PersistenceError("Failed to create directory")

    monkeypatch.setattr(cli_module, "mirror_site", failing_mirror)
    assert main(["https://docs.example.com", "--output", str(tmp_path)]) == 1
