"""
Shared fixtures: a small global-settings schema, store files and contexts.
"""

from pathlib import Path

import pytest

from confpanel.query.context import SettingsContext
from confpanel.schema.registry import SchemaRegistry

SCHEMA_TOML = """
version = "1.0"
i18n = "global_settings_setting"

[security]
name = "Security"

    [security.password]
    name = "Passwords"

        [security.password.admin_strength]
        type = "select"
        choices = ["1", "2", "3", "4"]
        default = "1"

    [security.webadmin]
    name = "Webadmin"

        [security.webadmin.webadmin_allowlist_enabled]
        type = "boolean"
        default = false

        [security.webadmin.webadmin_allowlist]
        type = "tags"
        visible = "webadmin_allowlist_enabled"

    [security.root_access]
    name = "Root access"

        [security.root_access.root_password]
        type = "password"

    [security.ssh]
    name = "SSH"

        [security.ssh.ssh_port]
        type = "number"
        default = 22
        min = 1
        max = 65535
        ask = { en = "SSH port", fr = "Port SSH" }

        [security.ssh.ssh_password_authentication]
        type = "boolean"
        default = true

[email]
name = "Email"

    [email.smtp]
    name = "SMTP"

        [email.smtp.smtp_relay_enabled]
        type = "boolean"

        [email.smtp.smtp_relay_host]
        type = "string"
        visible = "smtp_relay_enabled"

        [email.smtp.smtp_relay_port]
        type = "number"
        default = 587
        visible = "smtp_relay_enabled"

        [email.smtp.smtp_relay_password]
        type = "password"
        visible = "smtp_relay_enabled"

[misc]
name = "Other"

    [misc.portal]
    name = "Portal"

        [misc.portal.portal_theme]
        type = "select"
        choices = ["system", "light", "dark"]
        default = "system"
        step = 1

        [misc.portal.portal_notice]
        type = "alert"
        ask = "The portal is shared by every user"

        [misc.portal.ssowat_panel_overlay_enabled]
        type = "boolean"
        default = true

    [misc.backup]
    name = "Backup"

        [misc.backup.backup_compress_tar_archives]
        type = "boolean"
        default = false
"""


def fake_translate(msgid, locale, params=None):
    """Translator that knows every message id"""
    return f"{locale}:{msgid}"


@pytest.fixture
def registry():
    return SchemaRegistry.from_text(SCHEMA_TOML, "toml")


@pytest.fixture
def schema_path(tmp_path) -> Path:
    path = tmp_path / "config_global.toml"
    path.write_text(SCHEMA_TOML, encoding="utf-8")
    return path


@pytest.fixture
def store_path(tmp_path) -> Path:
    """Path of a store file that does not exist yet"""
    return tmp_path / "settings.yml"


@pytest.fixture
def make_ctx(registry):
    """Build a context over the sample schema"""

    def _make(overrides=None, locale="en", translate=fake_translate):
        return SettingsContext.build(registry, overrides, translate=translate, locale=locale)

    return _make


@pytest.fixture
def translate():
    return fake_translate
