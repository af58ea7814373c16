import pytest

from padmap.paths import config_dir, default_config_path


def test_config_dir_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    p = config_dir()
    assert p == tmp_path / "padmap"
    assert p.is_dir()


def test_config_dir_fallback(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    p = config_dir()
    assert p == tmp_path / ".config" / "padmap"
    assert p.is_dir()


def test_default_config_path(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert default_config_path() == tmp_path / "padmap" / "config.toml"
