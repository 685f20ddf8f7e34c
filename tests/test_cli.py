"""
Tests for the command line entrypoint and query runner.
"""

import json

import pytest
import yaml

from confpanel.config import EngineConfig
from confpanel.errors import UnknownKey
from confpanel.render import RenderMode
from confpanel.render.serializer import OutputFormat
from confpanel.run import run_query
from confpanel.run.cli import main


@pytest.fixture
def cli(schema_path, store_path, tmp_path, capsys):
    """Run the CLI against the sample schema; returns (exit code, stdout, stderr)"""

    def _run(*args, locale="en"):
        argv = [
            "--schema",
            str(schema_path),
            "--store",
            str(store_path),
            "--locale",
            locale,
            "--set",
            f"locales_dir={tmp_path / 'locales'}",
            *args,
        ]
        code = main(argv)
        out, err = capsys.readouterr()
        return code, out, err

    return _run


def _error(err):
    return json.loads(err.strip().splitlines()[-1])


def test_get_json(cli, store_path):
    """Test the allowlist flag before and after an override"""
    code, out, err = cli("settings", "get", "--json", "security.webadmin.webadmin_allowlist_enabled")
    assert code == 0
    assert out == "false\n"

    store_path.write_text("security.webadmin.webadmin_allowlist_enabled: true\n")
    code, out, _ = cli("settings", "get", "--json", "security.webadmin.webadmin_allowlist_enabled")
    assert code == 0
    assert out == "true\n"

    code, out, _ = cli("settings", "get", "--full", "--json", "security.webadmin.webadmin_allowlist_enabled")
    doc = json.loads(out)
    assert doc["value"] is True
    assert doc["default"] is False
    assert doc["type"] == "boolean"


def test_get_translated_ask(cli, tmp_path):
    """Test labels come from the locale catalogs"""
    locales = tmp_path / "locales"
    locales.mkdir()
    (locales / "fr.json").write_text(
        json.dumps({"global_settings_setting_webadmin_allowlist_enabled": "Activer la liste"}), encoding="utf-8"
    )
    code, out, _ = cli("settings", "get", "--full", "--json", "security.webadmin.webadmin_allowlist_enabled", locale="fr")
    assert code == 0
    assert json.loads(out)["ask"] == "Activer la liste"


def test_get_default_formats(cli):
    """Test plain output for values and YAML for trees"""
    code, out, _ = cli("settings", "get", "security.ssh.ssh_port")
    assert (code, out) == (0, "22\n")

    code, out, _ = cli("settings", "get", "security.ssh.ssh_password_authentication")
    assert out == "yes\n"

    code, out, _ = cli("settings", "get", "security.ssh")
    assert out == "ssh_port: 22\nssh_password_authentication: true\n"


def test_get_export(cli):
    """Test export output keeps declaration order"""
    code, out, _ = cli("settings", "get", "--export", "--json", "security.ssh")
    assert code == 0
    assert list(json.loads(out)) == ["security.ssh.ssh_port", "security.ssh.ssh_password_authentication"]


def test_unknown_key(cli):
    """Test unknown keys exit non-zero with a structured error and no output"""
    code, out, err = cli("settings", "get", "--json", "security.nonexistent")
    assert code == 1
    assert out == ""
    assert _error(err) == {
        "error": "UnknownKey",
        "message": "Unknown setting key: 'security.nonexistent'",
        "key": "security.nonexistent",
    }


def test_plain_on_tree(cli):
    """Test plain format on a multi-value result"""
    code, out, err = cli("settings", "get", "--plain", "security.ssh")
    assert code == 1
    assert out == ""
    assert _error(err)["error"] == "FormatMismatch"


def test_invalid_store_value(cli, store_path):
    """Test a stored value breaking its constraint"""
    store_path.write_text("security.ssh.ssh_port: 0\n")
    code, out, err = cli("settings", "get", "security.ssh.ssh_port")
    assert code == 1
    assert out == ""
    assert _error(err)["error"] == "ConstraintViolation"
    assert _error(err)["key"] == "security.ssh.ssh_port"


def test_broken_store(cli, store_path):
    """Test unreadable store"""
    store_path.write_text("- not\n- a mapping\n")
    code, _, err = cli("settings", "get", "security")
    assert code == 1
    assert _error(err)["error"] == "PersistenceError"


def test_broken_schema(tmp_path, capsys):
    """Test schema errors abort before any query"""
    schema = tmp_path / "schema.toml"
    schema.write_text("[p.s.o]\ntype = 'select'\n")
    code = main(["--schema", str(schema), "--store", str(tmp_path / "settings.yml"), "settings", "list"])
    out, err = capsys.readouterr()
    assert code == 1
    assert out == ""
    assert _error(err)["error"] == "SchemaError"


def test_legacy_key(cli):
    """Test legacy aliases are accepted"""
    code, out, _ = cli("settings", "get", "security.ssh.port")
    assert (code, out) == (0, "22\n")


def test_list_hides_excluded(cli):
    """Test classic list hides root access, full list keeps it"""
    code, out, _ = cli("settings", "list", "--json")
    assert code == 0
    listing = json.loads(out)
    assert "root_access" not in listing["security"]
    assert listing["security"]["ssh"]["ssh_port"] == 22

    code, out, _ = cli("settings", "list", "--full", "--yaml")
    assert code == 0
    assert "root_access" in yaml.safe_load(out)["panels"]["security"]["sections"]


def test_usage_errors(cli, capsys):
    """Test argument errors exit with status 2"""
    with pytest.raises(SystemExit) as exc:
        main(["settings", "get", "--full", "--export", "security"])
    assert exc.value.code == 2

    with pytest.raises(SystemExit) as exc:
        main(["settings", "list", "--plain"])
    assert exc.value.code == 2
    capsys.readouterr()

    code, out, err = cli("--set", "nonexistent=1", "settings", "list")
    assert code == 2
    assert out == ""
    assert "Unknown configuration field" in err


def test_run_query(schema_path, store_path, translate):
    """Test the runner with an injected translator"""
    config = EngineConfig(schema_path=str(schema_path), store_path=str(store_path), locale="en")

    result = run_query(config, "misc.portal", RenderMode.FULL, OutputFormat.JSON, translate=translate)
    doc = json.loads(result.output)
    assert doc["name"] == "en:global_settings_setting_misc_portal"
    assert result.mode is RenderMode.FULL

    result = run_query(config, "", list_all=True, translate=translate)
    assert "root_access" not in result.document["security"]

    with pytest.raises(UnknownKey):
        run_query(config, "security.ssh.nonexistent", translate=translate)


def test_passwords_masked_in_listings(cli, store_path):
    """Test stored passwords never appear in list or section output"""
    store_path.write_text("smtp_relay_enabled: true\nsmtp_relay_password: s3cret\nroot_password: hunter2\n")

    code, out, _ = cli("settings", "list", "--json")
    assert code == 0
    assert json.loads(out)["email"]["smtp"]["smtp_relay_password"] == "**************"

    code, out, _ = cli("settings", "get", "--json", "email.smtp")
    assert code == 0
    assert json.loads(out)["smtp_relay_password"] == "**************"

    code, out, _ = cli("settings", "list", "--full", "--json")
    assert code == 0
    assert "s3cret" not in out and "hunter2" not in out

    code, out, _ = cli("settings", "get", "email.smtp.smtp_relay_password", "--json")
    assert out == '"s3cret"\n'


def test_undecodable_store(cli, store_path):
    """Test a store that is not valid UTF-8 is reported as a persistence error"""
    store_path.write_bytes(b"ssh_port: \xff\xfe\n")
    code, out, err = cli("settings", "get", "security.ssh.ssh_port")
    assert code == 1
    assert out == ""
    assert _error(err)["error"] == "PersistenceError"


def test_broken_catalog(cli, tmp_path):
    """Test an unreadable translation catalog does not break the query"""
    locales = tmp_path / "locales"
    locales.mkdir()
    (locales / "fr.json").write_text("{not json", encoding="utf-8")
    code, out, _ = cli("settings", "get", "--full", "--json", "security.ssh.ssh_port", locale="fr")
    assert code == 0
    assert json.loads(out)["ask"] == "Port SSH"
