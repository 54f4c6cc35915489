import pytest

from relmap.core import Entity, IntegerField, StringField
from relmap.metadata import InMemoryTableConfiguration
from relmap.persistence import PersistenceManager
from relmap.query import Q, QuerySettings, SQLCompiler
from relmap.storage import SQLiteStorageBackend


class Note(Entity):
    title = StringField()
    rating = IntegerField()

    class Meta:
        table = "note"


NOTE_TABLES = {
    "note": {
        "ctrl": {
            "delete": "deleted",
            "enable_columns": {"disabled": "hidden", "starttime": "starttime", "endtime": "endtime"},
        },
        "columns": {
            "title": {"config": {"type": "input"}},
            "rating": {"config": {"type": "input", "eval": "int"}},
        },
    }
}


def make_manager(tmp_path):
    storage = SQLiteStorageBackend(f"sqlite:///{tmp_path / 'query.db'}")
    storage.executescript(
        """
        CREATE TABLE "note" (
            uid INTEGER PRIMARY KEY AUTOINCREMENT,
            pid INTEGER DEFAULT 0,
            title TEXT,
            rating INTEGER,
            deleted INTEGER DEFAULT 0,
            hidden INTEGER DEFAULT 0,
            starttime INTEGER DEFAULT 0,
            endtime INTEGER DEFAULT 0
        );
        """
    )
    return PersistenceManager(storage, InMemoryTableConfiguration(NOTE_TABLES), clock=lambda: 1000)


def seed(manager):
    rows = [
        {"title": "visible", "rating": 3},
        {"title": "hidden", "rating": 4, "hidden": 1},
        {"title": "deleted", "rating": 5, "deleted": 1},
        {"title": "future", "rating": 1, "starttime": 2000},
        {"title": "expired", "rating": 2, "endtime": 500},
        {"title": "other page", "rating": 9, "pid": 7},
        {"title": "second", "rating": 1},
    ]
    for row in rows:
        manager.storage.add_row("note", row)


def test_compiled_where_clause_contains_restrictions(tmp_path):
    manager = make_manager(tmp_path)
    query = manager.create_query(Note).filter(title="a")
    compiled = SQLCompiler(query).compile()
    assert compiled.fields == '"note".*'
    assert compiled.from_clause == '"note"'
    assert compiled.where_clause == (
        '("note"."title" = ?) AND ("note"."deleted" = 0 AND "note"."hidden" = 0 AND '
        '"note"."starttime" <= ? AND ("note"."endtime" = 0 OR "note"."endtime" > ?)) AND '
        '("note"."pid" IN (?))'
    )
    assert compiled.params == ["a", 1000, 1000, 0]
    manager.storage.close()


def test_lookups_and_negation(tmp_path):
    manager = make_manager(tmp_path)
    query = manager.create_query(Note).matching(
        (Q(rating__gte=2) | Q(title__contains="ec")) & ~Q(uid__in=[1, 2])
    )
    query.settings.respect_storage_page = False
    query.settings.ignore_enable_fields = True
    query.settings.include_deleted = True
    compiled = SQLCompiler(query).compile()
    assert compiled.where_clause == (
        '(("note"."rating" >= ?) OR ("note"."title" LIKE ?)) AND (NOT ("note"."uid" IN (?, ?)))'
    )
    assert compiled.params == [2, "%ec%", 1, 2]
    manager.storage.close()


def test_empty_in_matches_nothing(tmp_path):
    manager = make_manager(tmp_path)
    seed(manager)
    assert manager.create_query(Note).filter(uid__in=[]).count() == 0
    manager.storage.close()


def test_unsupported_lookup_is_rejected(tmp_path):
    manager = make_manager(tmp_path)
    with pytest.raises(ValueError):
        SQLCompiler(manager.create_query(Note).filter(title__regex="x")).compile()
    with pytest.raises(ValueError):
        SQLCompiler(manager.create_query(Note).filter(title__gt=None)).compile()
    manager.storage.close()


def test_enable_fields_and_storage_page(tmp_path):
    manager = make_manager(tmp_path)
    seed(manager)
    titles = [note.title for note in manager.create_query(Note).order_by("uid").execute()]
    assert titles == ["visible", "second"]

    query = manager.create_query(Note).order_by("-rating", "uid")
    query.settings.ignore_enable_fields = True
    query.settings.storage_page_ids = [0, 7]
    titles = [note.title for note in query.execute()]
    assert titles == ["other page", "hidden", "visible", "expired", "future", "second"]

    query.settings.include_deleted = True
    assert query.count() == 7
    manager.storage.close()


def test_limit_offset_and_first(tmp_path):
    manager = make_manager(tmp_path)
    seed(manager)
    query = manager.create_query(Note)
    query.settings = QuerySettings(respect_storage_page=False, ignore_enable_fields=True)
    page = query.order_by("uid").limit(2).offset(1).execute()
    assert [note.title for note in page] == ["hidden", "future"]
    assert query.get_limit() is None

    result = query.order_by("-uid").execute()
    assert not result.is_loaded()
    assert result.first().title == "second"
    assert result.count() == 6
    assert len(result) == 6
    assert result.is_loaded()
    manager.storage.close()


def test_query_result_reuses_identity(tmp_path):
    manager = make_manager(tmp_path)
    seed(manager)
    first = manager.create_query(Note).filter(title="visible").execute().first()
    again = manager.create_query(Note).filter(rating=3).execute().to_list()
    assert again == [first]
    assert again[0] is first
    assert manager.get_object_count_by_query(manager.create_query(Note)) == 2
    rows = manager.get_object_data_by_query(manager.create_query(Note).filter(title="second"))
    assert rows[0]["rating"] == 1
    manager.storage.close()
