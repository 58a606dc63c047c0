import pytest

from local_store import LocalStore
from registry_errors import StorageQuotaExceeded


def test_set_get_remove(local_store):
    assert local_store.get_item("a") is None
    local_store.set_item("a", "1")
    assert local_store.get_item("a") == "1"
    local_store.remove_item("a")
    local_store.remove_item("a")
    assert local_store.get_item("a") is None
    assert local_store.keys() == []


def test_persists_across_instances(storage_path):
    LocalStore(storage_path, 1000).set_item("key", "value")
    assert LocalStore(storage_path, 1000).get_item("key") == "value"


def test_quota_is_enforced_and_store_unchanged(storage_path):
    store = LocalStore(storage_path, 10)
    store.set_item("k", "12345")
    assert store.used_bytes() == 6
    with pytest.raises(StorageQuotaExceeded):
        store.set_item("k", "1234567890")
    assert store.get_item("k") == "12345"
    assert LocalStore(storage_path, 10).get_item("k") == "12345"


def test_overwrite_counts_only_new_value(storage_path):
    store = LocalStore(storage_path, 10)
    store.set_item("k", "123456789")
    store.set_item("k", "987654321")
    assert store.get_item("k") == "987654321"


@pytest.mark.parametrize("content", ["not json", "[1, 2]", ""])
def test_unreadable_file_starts_empty(storage_path, content):
    storage_path.write_text(content, encoding="utf-8")
    assert LocalStore(storage_path, 100).keys() == []
