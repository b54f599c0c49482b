"""Tests for the layered YAML configuration loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from rulesync import configuration
from rulesync.sync import DestinationChoice, InstallSettings, UntrackedPolicy


def _prepare_repo_defaults(tmp_path: Path, content: str = "install:\n  location: local\n") -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "10-defaults.yml").write_text(content, encoding="utf-8")
    return config_dir


def _write_overrides(package_root: Path, content: str, name: str = "20-overrides.yml") -> None:
    overrides_dir = package_root / "config"
    overrides_dir.mkdir(parents=True, exist_ok=True)
    (overrides_dir / name).write_text(content, encoding="utf-8")


def test_resolve_package_root_uses_env_expansion(tmp_path: Path):
    env = {configuration.PACKAGE_ROOT_ENV: str(tmp_path / "pkg")}
    assert configuration.resolve_package_root(env=env) == tmp_path / "pkg"


def test_resolve_package_root_defaults_to_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    assert configuration.resolve_package_root(env={}) == tmp_path


def test_load_runtime_configuration_merges_repo_and_package(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    repo_dir = _prepare_repo_defaults(tmp_path)
    package_root = tmp_path / "pkg"
    _write_overrides(package_root, "install:\n  location: home\n  untracked_policy: refuse\n")
    monkeypatch.setattr(configuration, "DEFAULT_CONFIG_DIR", repo_dir)

    bundle = configuration.load_runtime_configuration(package_root)

    assert bundle.status == "ready"
    assert bundle.merged["install"]["location"] == "home"
    assert bundle.merged["install"]["untracked_policy"] == "refuse"
    assert len(bundle.files_loaded) == 2


def test_load_runtime_configuration_fills_schema_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    repo_dir = _prepare_repo_defaults(tmp_path)
    package_root = tmp_path / "pkg"
    package_root.mkdir()
    monkeypatch.setattr(configuration, "DEFAULT_CONFIG_DIR", repo_dir)

    bundle = configuration.load_runtime_configuration(package_root)

    install = bundle.merged["install"]
    assert install["managed_directories"] == ["agents", "skills", "commands", "rules"]
    assert install["extensions"] == [".md"]
    assert install["manifest_name"] == ".rulesync-manifest.json"
    assert bundle.merged["logging"]["level"] == "INFO"


def test_load_runtime_configuration_reports_missing_package_root(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    repo_dir = _prepare_repo_defaults(tmp_path)
    monkeypatch.setattr(configuration, "DEFAULT_CONFIG_DIR", repo_dir)

    bundle = configuration.load_runtime_configuration(tmp_path / "missing")

    assert bundle.status == "missing"
    assert any(diag.level == "error" for diag in bundle.diagnostics)


def test_load_runtime_configuration_handles_bad_yaml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    repo_dir = _prepare_repo_defaults(tmp_path)
    package_root = tmp_path / "pkg"
    _write_overrides(package_root, "install: [\n", name="broken.yml")
    monkeypatch.setattr(configuration, "DEFAULT_CONFIG_DIR", repo_dir)

    bundle = configuration.load_runtime_configuration(package_root)

    assert bundle.status == "invalid"
    assert any("Failed to parse" in diag.message for diag in bundle.diagnostics)


def test_load_runtime_configuration_rejects_unknown_choice(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    repo_dir = _prepare_repo_defaults(tmp_path)
    package_root = tmp_path / "pkg"
    _write_overrides(package_root, "install:\n  untracked_policy: shred\n")
    monkeypatch.setattr(configuration, "DEFAULT_CONFIG_DIR", repo_dir)

    bundle = configuration.load_runtime_configuration(package_root)

    assert bundle.status == "invalid"
    assert bundle.merged["install"]["untracked_policy"] == "overwrite"
    assert any("untracked_policy" in diag.message for diag in bundle.diagnostics)


def test_load_runtime_configuration_warns_on_unknown_keys(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    repo_dir = _prepare_repo_defaults(tmp_path)
    package_root = tmp_path / "pkg"
    _write_overrides(package_root, "install:\n  colour: blue\n")
    monkeypatch.setattr(configuration, "DEFAULT_CONFIG_DIR", repo_dir)

    bundle = configuration.load_runtime_configuration(package_root)

    assert bundle.status == "ready"
    assert any(
        diag.level == "warning" and "config.install.colour" in diag.message
        for diag in bundle.diagnostics
    )


def test_install_settings_from_bundle(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    repo_dir = _prepare_repo_defaults(tmp_path)
    package_root = tmp_path / "pkg"
    _write_overrides(
        package_root,
        "install:\n"
        "  location: home\n"
        "  untracked_policy: backup\n"
        "  managed_directories: [agents]\n"
        "  record_git_metadata: false\n",
    )
    monkeypatch.setattr(configuration, "DEFAULT_CONFIG_DIR", repo_dir)

    settings = InstallSettings.from_bundle(configuration.load_runtime_configuration(package_root))

    assert settings.location is DestinationChoice.HOME
    assert settings.untracked_policy is UntrackedPolicy.BACKUP
    assert settings.managed_directories == ("agents",)
    assert settings.extensions == (".md",)
    assert settings.record_git_metadata is False


def test_install_settings_fall_back_on_bad_values():
    diagnostics = []
    settings = InstallSettings.from_config(
        {"install": {"location": "moon", "managed_directories": [], "source_dir": "  "}},
        diagnostics,
    )

    assert settings.location is DestinationChoice.LOCAL
    assert settings.managed_directories == ("agents", "skills", "commands", "rules")
    assert settings.source_dir == "everything-claude-code"
    assert len(diagnostics) == 1
    assert diagnostics[0].level == "warning"


def test_install_settings_without_config_use_defaults():
    settings = InstallSettings.from_config(None)

    assert settings == InstallSettings()
