import pytest

from relmap.storage import SQLiteStorageBackend, StorageConfig, StorageConfigurationError, StorageError
from relmap.storage.base import StorageExecutionError
from relmap.utils import get_logger
from relmap.utils.performance import PerformanceTracker


def make_storage(tmp_path, tracker=None):
    storage = SQLiteStorageBackend(f"sqlite:///{tmp_path / 'storage.db'}", tracker=tracker)
    storage.executescript(
        """
        CREATE TABLE "post" (uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, title TEXT, rating INTEGER);
        CREATE TABLE "post_tag_mm" (uid_local INTEGER, uid_foreign INTEGER, sorting INTEGER DEFAULT 0);
        """
    )
    return storage


def test_add_update_and_remove_rows(tmp_path):
    storage = make_storage(tmp_path)
    uid = storage.add_row("post", {"title": "First", "rating": 3})
    assert uid == 1
    assert storage.update_row("post", {"uid": uid, "title": "Renamed"})
    rows = storage.select_rows('"post".*', '"post"')
    assert rows == [{"uid": 1, "pid": 0, "title": "Renamed", "rating": 3}]

    storage.remove_row("post", {"uid": uid})
    assert storage.count('"post"') == 0
    storage.close()


def test_update_row_requires_uid(tmp_path):
    storage = make_storage(tmp_path)
    with pytest.raises(StorageError):
        storage.update_row("post", {"title": "x"})
    storage.close()


def test_update_relation_table_row_inserts_when_missing(tmp_path):
    storage = make_storage(tmp_path)
    match = {"uid_local": 1, "uid_foreign": 2}
    storage.update_relation_table_row("post_tag_mm", match, {"sorting": 1})
    storage.update_relation_table_row("post_tag_mm", match, {"sorting": 4})
    rows = storage.select_rows("*", '"post_tag_mm"')
    assert rows == [{"uid_local": 1, "uid_foreign": 2, "sorting": 4}]
    storage.close()


def test_select_rows_with_where_order_and_paging(tmp_path):
    storage = make_storage(tmp_path)
    for title, rating in [("a", 1), ("b", 5), ("c", 3), ("d", 4)]:
        storage.add_row("post", {"title": title, "rating": rating})
    rows = storage.select_rows(
        '"post".*',
        '"post"',
        '"post"."rating" > ?',
        [1],
        [('"post"."rating"', "DESC")],
        limit=2,
        offset=1,
    )
    assert [row["title"] for row in rows] == ["d", "c"]
    only_offset = storage.select_rows('"post".*', '"post"', order_by=[('"post"."uid"', "ASC")], offset=3)
    assert [row["title"] for row in only_offset] == ["d"]
    assert storage.count('"post"', '"post"."rating" >= ?', [4]) == 2
    storage.close()


def test_find_uid_and_null_matches(tmp_path):
    storage = make_storage(tmp_path)
    storage.add_row("post", {"title": "a"})
    uid = storage.add_row("post", {"title": "b", "rating": 2})
    assert storage.find_uid("post", {"title": "b", "rating": 2}) == uid
    assert storage.find_uid("post", {"title": "a", "rating": None}) == 1
    assert storage.find_uid("post", {"title": "missing"}) is None
    with pytest.raises(StorageError):
        storage.find_uid("post", {})
    storage.close()


def test_truncate_and_empty_insert(tmp_path):
    storage = make_storage(tmp_path)
    uid = storage.add_row("post", {})
    assert uid == 1
    storage.truncate("post")
    assert storage.count('"post"') == 0
    storage.close()


def test_errors_are_wrapped(tmp_path):
    storage = make_storage(tmp_path)
    with pytest.raises(StorageExecutionError):
        storage.add_row("missing", {"title": "x"})
    storage.close()


def test_quote_identifier():
    storage = SQLiteStorageBackend()
    assert storage.quote_identifier("post.title") == '"post"."title"'
    assert storage.quote_identifier('we"ird') == '"we""ird"'
    assert storage.quote_identifier("*") == "*"


def test_tracker_records_statements(tmp_path):
    tracker = PerformanceTracker(get_logger("tests.storage"))
    storage = make_storage(tmp_path, tracker=tracker)
    storage.add_row("post", {"title": "a"})
    storage.select_rows("*", '"post"')
    assert tracker.count("INSERT") == 1
    assert tracker.count("SELECT") == 1
    storage.close()


def test_storage_config_from_env(monkeypatch):
    monkeypatch.setenv("RELMAP_DATABASE_URL", "sqlite:///blog.db")
    monkeypatch.setenv("RELMAP_SLOW_QUERY_MS", "250")
    config = StorageConfig.from_env()
    assert config.url == "sqlite:///blog.db"
    assert config.slow_query_ms == 250
    assert config.source == "RELMAP_DATABASE_URL"

    monkeypatch.delenv("RELMAP_DATABASE_URL")
    with pytest.raises(StorageConfigurationError):
        StorageConfig.from_env()
