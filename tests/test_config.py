import pytest

from catalog_smoke import __main__ as main_module
from catalog_smoke.util import errors
from catalog_smoke.util.config import get_policy, get_stop_every, load_config


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(
        "general:\n"
        "  image: base-64\n"
        "polling:\n"
        "  provisioning: {max_attempts: null}\n"
        "  stop_every: 3\n"
    )
    monkeypatch.setenv("CATALOG_SMOKE_CONFIG", str(path))
    return path


def test_load_from_environment(config_file):
    assert load_config()["general"]["image"] == "base-64"


def test_policy_defaults(config_file):
    config = load_config()

    provisioning = get_policy(config, "provisioning")
    assert provisioning.interval == 5
    assert provisioning.max_attempts is None

    reconcile = get_policy(config, "reconcile")
    assert (reconcile.interval, reconcile.max_attempts, reconcile.wait_first) == \
        (30, 10, True)

    assert get_stop_every(config) == 3
    assert get_stop_every({}) == 10


def test_main_exit_code(config_file, monkeypatch, capsys):
    def failing_mode(config):
        raise errors.InstallationError("Installing foo failed", "ERROR: bad dependency")

    monkeypatch.setitem(main_module.MODES, "run", failing_mode)
    monkeypatch.setattr("sys.argv", ["catalog_smoke", "run"])

    with pytest.raises(SystemExit) as excinfo:
        main_module.main()

    assert excinfo.value.code == 7
    assert "ERROR: bad dependency" in capsys.readouterr().err


def test_main_unknown_mode(monkeypatch):
    monkeypatch.setattr("sys.argv", ["catalog_smoke", "frobnicate"])

    with pytest.raises(SystemExit) as excinfo:
        main_module.main()

    assert excinfo.value.code == 1


def test_empty_polling_section(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("general:\n  image: base-64\npolling:\n")

    config = load_config(str(path))

    assert get_policy(config, "stop").interval == 5
    assert get_stop_every(config) == 10


@pytest.mark.parametrize("value", ["0", "-1", "two"])
def test_invalid_stop_every(tmp_path, value):
    path = tmp_path / "config.yaml"
    path.write_text("polling:\n  stop_every: %s\n" % value)

    with pytest.raises(errors.ConfigurationError):
        load_config(str(path))


def test_main_reports_invalid_config(tmp_path, monkeypatch, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("polling:\n  stop_every: 0\n")
    monkeypatch.setenv("CATALOG_SMOKE_CONFIG", str(path))
    monkeypatch.setattr("sys.argv", ["catalog_smoke", "run"])

    with pytest.raises(SystemExit) as excinfo:
        main_module.main()

    assert excinfo.value.code == 1
    assert "stop_every" in capsys.readouterr().err
