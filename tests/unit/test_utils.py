from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from excel_protector import utils
from excel_protector.utils import (
    Settings,
    find_target_files,
    format_size,
    load_settings_yaml,
    sha256_hex,
    write_bytes_atomic,
)


def test_format_size_boundaries() -> None:
    assert format_size(0) == "0 B"
    assert format_size(1023) == "1023 B"
    assert format_size(1024) == "1.0 KB"
    assert format_size(1536) == "1.5 KB"
    assert format_size(1024 * 1024 - 1) == "1024.0 KB"
    assert format_size(1024 * 1024) == "1.00 MB"
    assert format_size(5 * 1024 * 1024 + 512 * 1024) == "5.50 MB"


def test_sha256_hex_known_digest() -> None:
    assert sha256_hex(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    assert len(sha256_hex(b"abc")) == 64


def test_find_target_files_filters_lock_files_and_extension(tmp_path: Path) -> None:
    for name in ("a.xlsx", "~$a.xlsx", "b.txt", "B.XLSX"):
        (tmp_path / name).write_bytes(b"x")

    files = find_target_files(tmp_path)

    assert [p.name for p in files] == ["a.xlsx"]
    assert files[0].is_absolute()


def test_find_target_files_is_not_recursive_and_skips_directories(tmp_path: Path) -> None:
    (tmp_path / "c.xlsx").write_bytes(b"x")
    (tmp_path / "a.xlsx").write_bytes(b"x")
    (tmp_path / "dir.xlsx").mkdir()
    nested = tmp_path / "nested"
    nested.mkdir()
    (nested / "inner.xlsx").write_bytes(b"x")

    assert [p.name for p in find_target_files(tmp_path)] == ["a.xlsx", "c.xlsx"]


def test_find_target_files_custom_filter(tmp_path: Path) -> None:
    (tmp_path / "a.xlsm").write_bytes(b"x")
    (tmp_path / "tmp_a.xlsm").write_bytes(b"x")

    files = find_target_files(tmp_path, extension=".xlsm", lock_prefix="tmp_")

    assert [p.name for p in files] == ["a.xlsm"]


def test_write_bytes_atomic_replaces_content_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "demo.xlsx"
    target.write_bytes(b"old")

    write_bytes_atomic(target, b"new content")

    assert target.read_bytes() == b"new content"
    assert [p.name for p in tmp_path.iterdir()] == ["demo.xlsx"]


def test_load_settings_defaults_when_default_file_missing(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(utils, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")

    settings = load_settings_yaml()

    assert settings == Settings()


def test_load_settings_explicit_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings_yaml(tmp_path / "missing.yaml")


def test_load_settings_overrides_and_ignores_unknown_keys(tmp_path: Path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text(
        f"log_dir: {tmp_path / 'my_logs'}\n"
        "log_level: debug\n"
        "log_to_file: false\n"
        "lock_prefix: '.~lock'\n"
        "password: should-not-be-used\n",
        encoding="utf-8",
    )

    settings = load_settings_yaml(config)

    assert settings.log_dir == tmp_path / "my_logs"
    assert settings.log_level == "DEBUG"
    assert settings.log_to_file is False
    assert settings.lock_prefix == ".~lock"
    assert settings.extension == ".xlsx"
    assert not hasattr(settings, "password")


def test_load_settings_relative_log_dir_is_under_project_root(tmp_path: Path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text("log_dir: logs\n", encoding="utf-8")

    assert load_settings_yaml(config).log_dir == utils.PROJECT_ROOT / "logs"


def test_load_settings_rejects_non_mapping(tmp_path: Path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings_yaml(config)


def test_load_settings_invalid_yaml_raises_value_error(tmp_path: Path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text("log_dir: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings_yaml(config)


def test_write_bytes_atomic_keeps_file_mode(tmp_path: Path) -> None:
    target = tmp_path / "shared.xlsx"
    target.write_bytes(b"old")
    os.chmod(target, 0o644)

    write_bytes_atomic(target, b"new")

    assert stat.S_IMODE(target.stat().st_mode) == 0o644
    assert target.read_bytes() == b"new"


@pytest.mark.parametrize(
    "line",
    ["extension: 123", "lock_prefix: ''", "log_to_file: 'yes'", "log_dir: [a, b]", "log_level: 10"],
)
def test_load_settings_rejects_wrong_value_types(tmp_path: Path, line: str) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text(line + "\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings_yaml(config)
