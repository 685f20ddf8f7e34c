"""
Tests for the per-invocation settings context and value merging.
"""

import pytest

from confpanel.errors import ConstraintViolation, PersistenceError, TypeMismatch
from confpanel.query.context import SettingsContext, identity_translator
from confpanel.schema.registry import SchemaRegistry
from confpanel.schema.types import OptionType, TypedValue


def test_defaults_without_overrides(make_ctx, registry):
    """Test that every option falls back to its default"""
    ctx = make_ctx()
    for key, _panel, _section, _option in registry.iter_options():
        assert ctx.value_of(key) == registry.default_value(key)


def test_qualified_and_bare_overrides(make_ctx):
    """Test fully-qualified keys and unique bare option ids"""
    ctx = make_ctx({"security.ssh.ssh_port": "2222", "portal_theme": "dark"})
    assert ctx.value_of("security.ssh.ssh_port") == TypedValue(OptionType.NUMBER, 2222)
    assert ctx.value_of("misc.portal.portal_theme").value == "dark"


def test_unknown_override(make_ctx):
    """Test overrides for settings the schema does not define"""
    with pytest.raises(PersistenceError) as exc:
        make_ctx({"security.ssh.nonexistent": "1"})
    assert exc.value.key == "security.ssh.nonexistent"

    with pytest.raises(PersistenceError):
        make_ctx({"nonexistent": "1"})
    with pytest.raises(PersistenceError):
        make_ctx({"security.ssh": "1"})
    with pytest.raises(PersistenceError):
        make_ctx({"security..ssh": "1"})


def test_ambiguous_bare_override():
    """Test bare ids shared by several options"""
    registry = SchemaRegistry.from_mapping(
        {"a": {"one": {"enabled": {"type": "boolean"}}, "two": {"enabled": {"type": "boolean"}}}}
    )
    with pytest.raises(PersistenceError, match="ambiguous"):
        SettingsContext.build(registry, {"enabled": "yes"})

    ctx = SettingsContext.build(registry, {"a.two.enabled": "yes"})
    assert ctx.value_of("a.two.enabled").value is True
    assert ctx.value_of("a.one.enabled").value is False


def test_duplicate_override(make_ctx):
    """Test the same option overridden through two spellings"""
    with pytest.raises(PersistenceError, match="more than once"):
        make_ctx({"ssh_port": "2222", "security.ssh.ssh_port": "2200"})


def test_invalid_overrides_name_the_key(make_ctx):
    """Test type and constraint errors carry the offending key"""
    with pytest.raises(ConstraintViolation) as exc:
        make_ctx({"security.ssh.ssh_port": "70000"})
    assert exc.value.key == "security.ssh.ssh_port"
    assert exc.value.to_dict()["key"] == "security.ssh.ssh_port"

    with pytest.raises(TypeMismatch) as exc:
        make_ctx({"ssh_port": "ssh"})
    assert exc.value.key == "security.ssh.ssh_port"
    assert exc.value.to_dict() == {
        "error": "TypeMismatch",
        "message": "Expected a value of type 'number', got 'ssh'",
        "key": "security.ssh.ssh_port",
        "expected": "number",
        "got": "'ssh'",
    }

    with pytest.raises(ConstraintViolation):
        make_ctx({"misc.portal.portal_theme": "blue"})


def test_invisible_overrides_are_validated(make_ctx):
    """Test that overrides of hidden options are still checked"""
    ctx = make_ctx()
    assert not ctx.is_visible(ctx.registry.lookup("email.smtp.smtp_relay_port").visible, "email", "smtp")

    with pytest.raises(TypeMismatch) as exc:
        make_ctx({"email.smtp.smtp_relay_port": "submission"})
    assert exc.value.key == "email.smtp.smtp_relay_port"

    ctx = make_ctx({"email.smtp.smtp_relay_port": "2525"})
    assert ctx.value_of("email.smtp.smtp_relay_port").value == 2525


def test_display_only_overrides(make_ctx):
    """Test that display-only options cannot hold a stored value"""
    with pytest.raises(PersistenceError, match="display-only"):
        make_ctx({"misc.portal.portal_notice": "hello"})
    # an explicit null is harmless
    ctx = make_ctx({"misc.portal.portal_notice": None})
    assert ctx.value_of("misc.portal.portal_notice").is_set is False


def test_null_override_unsets(make_ctx):
    """Test that an explicit null clears a default"""
    ctx = make_ctx({"security.ssh.ssh_port": None})
    assert ctx.value_of("security.ssh.ssh_port").is_set is False
    with pytest.raises(TypeMismatch):
        make_ctx({"security.webadmin.webadmin_allowlist_enabled": None})


def test_visibility_follows_values(make_ctx):
    """Test that overrides flip predicate results"""
    predicate = make_ctx().registry.lookup("security.webadmin.webadmin_allowlist").visible
    assert make_ctx().is_visible(predicate, "security", "webadmin") is False
    enabled = make_ctx({"webadmin_allowlist_enabled": "true"})
    assert enabled.is_visible(predicate, "security", "webadmin") is True


def test_independent_contexts(registry):
    """Test several contexts over one registry do not share state"""
    first = SettingsContext.build(registry, {"ssh_port": "2222"}, locale="fr")
    second = SettingsContext.build(registry)
    assert first.value_of("security.ssh.ssh_port").value == 2222
    assert second.value_of("security.ssh.ssh_port").value == 22
    assert first.locale == "fr" and second.locale == "en"
    assert second.translate is identity_translator


def test_load_from_files(schema_path, store_path):
    """Test loading schema and store from disk"""
    store_path.write_text("security.ssh.ssh_port: 2200\n")
    ctx = SettingsContext.load(schema_path, store_path)
    assert ctx.value_of("security.ssh.ssh_port").value == 2200
    assert ctx.i18n_key == "global_settings_setting"
