"""
Tests for the override store: parsing, locking and atomic writes.
"""

import json

import pytest

from confpanel.errors import PersistenceError
from confpanel.schema.types import OptionType, TypedValue
from confpanel.store import FileLock, load_overrides, parse_overrides, save_overrides


def test_missing_store_is_empty(store_path):
    """Test that a missing file yields an empty map"""
    assert not store_path.exists()
    assert load_overrides(store_path) == {}


def test_empty_store_is_empty(store_path):
    """Test an empty file"""
    store_path.write_text("")
    assert load_overrides(store_path) == {}


def test_yaml_scalars_stay_text(store_path):
    """Test that YAML scalars are kept as text until coercion"""
    store_path.write_text(
        "security.ssh.ssh_port: 0755\n"
        "misc.backup.backup_compress_tar_archives: yes\n"
        "email.smtp.smtp_relay_host: ~\n"
        "email.smtp.smtp_relay_password: null\n"
    )
    assert load_overrides(store_path) == {
        "security.ssh.ssh_port": "0755",
        "misc.backup.backup_compress_tar_archives": "yes",
        "email.smtp.smtp_relay_host": None,
        "email.smtp.smtp_relay_password": None,
    }


def test_nested_mappings_are_flattened(store_path):
    """Test panel/section/option nesting"""
    store_path.write_text(
        "security:\n"
        "  webadmin:\n"
        "    webadmin_allowlist_enabled: true\n"
        "    webadmin_allowlist: [1.2.3.4, 5.6.7.8]\n"
        "ssh_port: 2222\n"
    )
    overrides = load_overrides(store_path)
    assert list(overrides) == [
        "security.webadmin.webadmin_allowlist_enabled",
        "security.webadmin.webadmin_allowlist",
        "ssh_port",
    ]
    assert overrides["security.webadmin.webadmin_allowlist_enabled"] == "true"
    assert overrides["security.webadmin.webadmin_allowlist"] == ["1.2.3.4", "5.6.7.8"]


def test_duplicate_after_flattening(tmp_path):
    """Test the same key written flat and nested"""
    with pytest.raises(PersistenceError) as exc:
        parse_overrides("a.b: 1\na:\n  b: 2\n", tmp_path / "settings.yml")
    assert exc.value.key == "a.b"


@pytest.mark.parametrize("text", ["key: [unclosed\n", "- a\n- b\n", "just text\n"])
def test_malformed_store(store_path, text):
    """Test unreadable or non-mapping documents"""
    store_path.write_text(text)
    with pytest.raises(PersistenceError):
        load_overrides(store_path)


def test_json_store(tmp_path):
    """Test JSON stores keep JSON types"""
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"security.ssh.ssh_port": 2222, "security": {"ssh": {"ssh_password_authentication": False}}}))
    assert load_overrides(path) == {
        "security.ssh.ssh_port": 2222,
        "security.ssh.ssh_password_authentication": False,
    }

    path.write_text("{not json")
    with pytest.raises(PersistenceError, match="Malformed override store"):
        load_overrides(path)


def test_unreadable_store(tmp_path):
    """Test that a directory in place of the store is a persistence error"""
    path = tmp_path / "settings.yml"
    path.mkdir()
    with pytest.raises(PersistenceError, match="Cannot read override store"):
        load_overrides(path)


def test_undecodable_store(store_path):
    """Test that invalid UTF-8 is a persistence error"""
    store_path.write_bytes(b"ssh_port: \xff\xfe\n")
    with pytest.raises(PersistenceError, match="Cannot read override store"):
        load_overrides(store_path)


def test_save_then_load(store_path):
    """Test writing and reading back the store"""
    save_overrides(
        store_path,
        {
            "security.ssh.ssh_port": 2222,
            "security.webadmin.webadmin_allowlist_enabled": True,
            "security.webadmin.webadmin_allowlist": TypedValue(OptionType.TAGS, ("1.2.3.4",)),
            "email.smtp.smtp_relay_host": None,
        },
    )
    assert load_overrides(store_path) == {
        "security.ssh.ssh_port": "2222",
        "security.webadmin.webadmin_allowlist_enabled": "true",
        "security.webadmin.webadmin_allowlist": ["1.2.3.4"],
        "email.smtp.smtp_relay_host": None,
    }


def test_save_json(tmp_path):
    """Test JSON store write"""
    path = tmp_path / "settings.json"
    save_overrides(path, {"security.ssh.ssh_port": 2222})
    assert json.loads(path.read_text()) == {"security.ssh.ssh_port": 2222}


def test_save_is_atomic_replace(store_path):
    """Test that saving replaces the file and leaves no temporary files"""
    store_path.write_text("security.ssh.ssh_port: 22\n")
    save_overrides(store_path, {"security.ssh.ssh_port": 2200})

    assert load_overrides(store_path) == {"security.ssh.ssh_port": "2200"}
    names = sorted(p.name for p in store_path.parent.iterdir())
    assert names == ["settings.yml", "settings.yml.lock"]


def test_save_creates_parent(tmp_path):
    """Test saving into a directory that does not exist yet"""
    path = tmp_path / "etc" / "settings.yml"
    save_overrides(path, {"a.b.c": "x"})
    assert path.exists()


def test_lock_file_location(store_path):
    """Test the sidecar lock path"""
    lock = FileLock(store_path, shared=True)
    assert lock.lock_file.name == "settings.yml.lock"
    with lock:
        assert lock.acquired
    assert not lock.acquired


def test_shared_locks_coexist(store_path):
    """Test that readers do not block each other"""
    with FileLock(store_path, shared=True, timeout=0.2):
        with FileLock(store_path, shared=True, timeout=0.2) as second:
            assert second.acquired


def test_writer_waits_for_reader(store_path):
    """Test that an exclusive lock times out while a reader holds the store"""
    with FileLock(store_path, shared=True):
        writer = FileLock(store_path, shared=False, timeout=0.1)
        with pytest.raises(PersistenceError, match="Lock timeout"):
            writer.acquire()
        assert not writer.acquired

    with FileLock(store_path, shared=False):
        reader = FileLock(store_path, shared=True, timeout=0.1)
        with pytest.raises(PersistenceError, match="Lock timeout"):
            reader.acquire()
