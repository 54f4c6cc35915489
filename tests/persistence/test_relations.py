from relmap.core import Entity, ObjectStorage, ObjectStorageField, RelatedField, StringField, is_lazy_loaded
from relmap.metadata import InMemoryTableConfiguration, RelationKind
from relmap.persistence import PersistenceManager
from relmap.storage import SQLiteStorageBackend
from relmap.utils import get_logger
from relmap.utils.performance import PerformanceTracker


class Tag(Entity):
    __module__ = "blog.domain.model"

    name = StringField()


class Article(Entity):
    __module__ = "blog.domain.model"

    title = StringField()
    tags = ObjectStorageField(Tag)


class LazyArticle(Entity):
    title = StringField()
    tags = ObjectStorageField(Tag, lazy=True)

    class Meta:
        table = "tx_blog_domain_model_article"


class Post(Entity):
    title = StringField()

    class Meta:
        table = "post"


class Blog(Entity):
    title = StringField()
    posts = ObjectStorageField(Post)

    class Meta:
        table = "blog"


class LazyBlog(Entity):
    title = StringField()
    posts = ObjectStorageField(Post, lazy=True)

    class Meta:
        table = "blog"


class Photo(Entity):
    title = StringField()

    class Meta:
        table = "photo"


class Gallery(Entity):
    title = StringField()
    photos = ObjectStorageField(Photo, cascade_remove=True)

    class Meta:
        table = "gallery"


class Song(Entity):
    title = StringField()

    class Meta:
        table = "song"


class Playlist(Entity):
    title = StringField()
    songs = ObjectStorageField(Song)

    class Meta:
        table = "playlist"


class Writer(Entity):
    name = StringField()

    class Meta:
        table = "writer"


class Essay(Entity):
    title = StringField()
    writer = RelatedField(Writer, lazy=True)

    class Meta:
        table = "essay"


TABLES = {
    "tx_blog_domain_model_article": {
        "columns": {
            "title": {"config": {"type": "input"}},
            "tags": {
                "config": {
                    "type": "select",
                    "foreign_table": "tx_blog_domain_model_tag",
                    "mm": "tx_blog_article_tag_mm",
                    "maxitems": 99,
                }
            },
        }
    },
    "tx_blog_domain_model_tag": {"columns": {"name": {"config": {"type": "input"}}}},
    "blog": {
        "columns": {
            "title": {"config": {"type": "input"}},
            "posts": {
                "config": {
                    "type": "inline",
                    "foreign_table": "post",
                    "foreign_field": "blog",
                    "foreign_table_field": "blog_table",
                    "foreign_sortby": "sorting",
                }
            },
        }
    },
    "post": {"columns": {"title": {"config": {"type": "input"}}}},
    "gallery": {
        "columns": {
            "title": {"config": {"type": "input"}},
            "photos": {"config": {"type": "inline", "foreign_table": "photo", "foreign_field": "gallery"}},
        }
    },
    "photo": {"columns": {"title": {"config": {"type": "input"}}}},
    "playlist": {
        "columns": {
            "title": {"config": {"type": "input"}},
            "songs": {"config": {"type": "select", "foreign_table": "song", "maxitems": 10}},
        }
    },
    "song": {"columns": {"title": {"config": {"type": "input"}}}},
    "writer": {"columns": {"name": {"config": {"type": "input"}}}},
    "essay": {
        "columns": {
            "title": {"config": {"type": "input"}},
            "writer": {"config": {"type": "select", "foreign_table": "writer", "maxitems": 1}},
        }
    },
}

SCHEMA = """
CREATE TABLE "tx_blog_domain_model_article" (
    uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, title TEXT, tags INTEGER DEFAULT 0
);
CREATE TABLE "tx_blog_domain_model_tag" (uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, name TEXT);
CREATE TABLE "tx_blog_article_tag_mm" (
    uid_local INTEGER, uid_foreign INTEGER, sorting INTEGER DEFAULT 0, sorting_foreign INTEGER DEFAULT 0
);
CREATE TABLE "blog" (uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, title TEXT, posts INTEGER DEFAULT 0);
CREATE TABLE "post" (
    uid INTEGER PRIMARY KEY AUTOINCREMENT,
    pid INTEGER DEFAULT 0,
    title TEXT,
    blog INTEGER DEFAULT 0,
    blog_table TEXT DEFAULT '',
    sorting INTEGER DEFAULT 0
);
CREATE TABLE "gallery" (uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, title TEXT, photos INTEGER DEFAULT 0);
CREATE TABLE "photo" (uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, title TEXT, gallery INTEGER DEFAULT 0);
CREATE TABLE "playlist" (uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, title TEXT, songs TEXT DEFAULT '');
CREATE TABLE "song" (uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, title TEXT);
CREATE TABLE "writer" (uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, name TEXT);
CREATE TABLE "essay" (uid INTEGER PRIMARY KEY AUTOINCREMENT, pid INTEGER DEFAULT 0, title TEXT, writer INTEGER DEFAULT 0);
"""


def make_storage(tmp_path, tracker=None):
    storage = SQLiteStorageBackend(f"sqlite:///{tmp_path / 'relations.db'}", tracker=tracker)
    storage.executescript(SCHEMA)
    return storage


def make_manager(storage):
    return PersistenceManager(storage, InMemoryTableConfiguration(TABLES))


def make_tracker():
    return PerformanceTracker(get_logger("tests.relations"))


def junction_rows(storage):
    return [
        (row["uid_local"], row["uid_foreign"], row["sorting"])
        for row in storage.select_rows(
            "*", '"tx_blog_article_tag_mm"', order_by=[('"uid_local"', "ASC"), ('"sorting"', "ASC")]
        )
    ]


def seed_article(storage, tag_names):
    storage.add_row("tx_blog_domain_model_article", {"title": "Seeded", "tags": len(tag_names)})
    for position, name in enumerate(tag_names, start=1):
        uid = storage.add_row("tx_blog_domain_model_tag", {"name": name})
        storage.add_row("tx_blog_article_tag_mm", {"uid_local": 1, "uid_foreign": uid, "sorting": position})


def test_article_metadata():
    manager = make_manager(SQLiteStorageBackend())
    data_map = manager.data_mapper.get_data_map(Article)
    assert data_map.table_name == "tx_blog_domain_model_article"
    assert data_map.get_column_map("title").column_name == "title"
    tags = data_map.get_column_map("tags")
    assert tags.relation_kind is RelationKind.HAS_AND_BELONGS_TO_MANY
    assert tags.relation_table_name == "tx_blog_article_tag_mm"


def test_new_article_with_new_tags_writes_junction_rows(tmp_path):
    storage = make_storage(tmp_path)
    manager = make_manager(storage)
    article = Article(title="Hello")
    article.tags.attach(Tag(name="orm"))
    article.tags.attach(Tag(name="python"))
    manager.add(article)
    manager.persist_all()

    article_rows = storage.select_rows("*", '"tx_blog_domain_model_article"')
    assert [(row["uid"], row["title"], row["tags"]) for row in article_rows] == [(1, "Hello", 2)]
    tag_rows = storage.select_rows("*", '"tx_blog_domain_model_tag"', order_by=[('"uid"', "ASC")])
    assert [row["name"] for row in tag_rows] == ["orm", "python"]
    assert junction_rows(storage) == [(1, 1, 1), (1, 2, 2)]
    storage.close()


def test_tags_are_loaded_in_junction_order(tmp_path):
    storage = make_storage(tmp_path)
    seed_article(storage, ["first", "second"])
    storage.update_relation_table_row("tx_blog_article_tag_mm", {"uid_local": 1, "uid_foreign": 1}, {"sorting": 3})

    article = make_manager(storage).get_object_by_identifier(1, Article)
    assert [tag.name for tag in article.tags] == ["second", "first"]
    assert not article.is_dirty()
    storage.close()


def test_detaching_a_tag_removes_exactly_one_junction_row(tmp_path):
    tracker = make_tracker()
    storage = make_storage(tmp_path, tracker=tracker)
    seed_article(storage, ["first", "second"])
    manager = make_manager(storage)
    article = manager.get_object_by_identifier(1, Article)
    first = article.tags.to_list()[0]

    tracker.reset()
    article.tags.detach(first)
    manager.persist_all()

    assert tracker.count("DELETE") == 1
    assert junction_rows(storage) == [(1, 2, 1)]
    assert storage.select_rows("*", '"tx_blog_domain_model_article"')[0]["tags"] == 1
    assert storage.count('"tx_blog_domain_model_tag"') == 2
    storage.close()


def test_attaching_an_existing_tag_inserts_exactly_one_junction_row(tmp_path):
    tracker = make_tracker()
    storage = make_storage(tmp_path, tracker=tracker)
    seed_article(storage, ["first"])
    storage.add_row("tx_blog_domain_model_tag", {"name": "loose"})
    manager = make_manager(storage)
    article = manager.get_object_by_identifier(1, Article)
    loose = manager.get_object_by_identifier(2, Tag)

    tracker.reset()
    article.tags.attach(loose)
    manager.persist_all()

    assert tracker.count("INSERT") == 1
    assert junction_rows(storage) == [(1, 1, 1), (1, 2, 2)]
    storage.close()


def test_lazy_relation_loads_with_one_query_on_first_access(tmp_path):
    tracker = make_tracker()
    storage = make_storage(tmp_path, tracker=tracker)
    seed_article(storage, ["first", "second"])
    manager = make_manager(storage)
    article = manager.get_object_by_identifier(1, LazyArticle)
    assert is_lazy_loaded(article.get_properties()["tags"])

    tracker.reset()
    manager.persist_all()
    assert tracker.count() == 0

    names = [tag.name for tag in article.tags]
    assert names == ["first", "second"]
    assert tracker.count("SELECT") == 1

    assert [tag.name for tag in article.tags] == names
    assert tracker.count("SELECT") == 1
    assert not article.is_dirty()
    storage.close()


def test_has_many_positions_are_renumbered_after_removal(tmp_path):
    storage = make_storage(tmp_path)
    writer = make_manager(storage)
    blog = Blog(title="News", posts=[Post(title="a"), Post(title="b"), Post(title="c")])
    writer.add(blog)
    writer.persist_all()

    rows = storage.select_rows("*", '"post"', order_by=[('"uid"', "ASC")])
    assert [(row["blog"], row["blog_table"], row["sorting"]) for row in rows] == [
        (1, "blog", 1),
        (1, "blog", 2),
        (1, "blog", 3),
    ]
    assert storage.select_rows("*", '"blog"')[0]["posts"] == 3

    manager = make_manager(storage)
    loaded = manager.get_object_by_identifier(1, Blog)
    assert [post.title for post in loaded.posts] == ["a", "b", "c"]
    loaded.posts.detach(loaded.posts.to_list()[1])
    manager.persist_all()

    rows = {row["title"]: row for row in storage.select_rows("*", '"post"')}
    assert (rows["a"]["blog"], rows["a"]["sorting"]) == (1, 1)
    assert (rows["c"]["blog"], rows["c"]["sorting"]) == (1, 2)
    assert (rows["b"]["blog"], rows["b"]["blog_table"], rows["b"]["sorting"]) == ("", "", 0)
    assert storage.select_rows("*", '"blog"')[0]["posts"] == 2
    storage.close()


def test_has_many_moved_member_gets_new_position(tmp_path):
    storage = make_storage(tmp_path)
    writer = make_manager(storage)
    writer.add(Blog(title="News", posts=[Post(title="a"), Post(title="b"), Post(title="c")]))
    writer.persist_all()

    manager = make_manager(storage)
    blog = manager.get_object_by_identifier(1, Blog)
    first = blog.posts.to_list()[0]
    blog.posts.detach(first)
    blog.posts.attach(first)
    manager.persist_all()

    rows = storage.select_rows("*", '"post"', order_by=[('"sorting"', "ASC")])
    assert [row["title"] for row in rows] == ["b", "c", "a"]
    assert [row["sorting"] for row in rows] == [1, 2, 3]
    storage.close()


def test_cascade_remove_deletes_children(tmp_path):
    storage = make_storage(tmp_path)
    manager = make_manager(storage)
    first, second = Photo(title="first"), Photo(title="second")
    gallery = Gallery(title="Holiday", photos=[first, second])
    manager.add(gallery)
    manager.persist_all()
    assert storage.count('"photo"') == 2

    gallery.photos.detach(first)
    manager.persist_all()
    assert [row["title"] for row in storage.select_rows("*", '"photo"')] == ["second"]

    manager.remove(gallery)
    manager.persist_all()
    assert storage.count('"gallery"') == 0
    assert storage.count('"photo"') == 0
    storage.close()


def test_relation_without_parent_key_stores_uid_list(tmp_path):
    storage = make_storage(tmp_path)
    writer = make_manager(storage)
    writer.add(Playlist(title="Mix", songs=[Song(title="one"), Song(title="two")]))
    writer.persist_all()
    assert storage.select_rows("*", '"playlist"')[0]["songs"] == "1,2"

    playlist = make_manager(storage).get_object_by_identifier(1, Playlist)
    assert {song.title for song in playlist.songs} == {"one", "two"}
    storage.close()


def test_empty_relation_value_needs_no_query(tmp_path):
    tracker = make_tracker()
    storage = make_storage(tmp_path, tracker=tracker)
    storage.add_row("playlist", {"title": "Empty"})
    manager = make_manager(storage)

    tracker.reset()
    playlist = manager.get_object_by_identifier(1, Playlist)
    assert len(playlist.songs) == 0
    assert tracker.count("SELECT") == 1
    storage.close()


def seed_blog(storage, titles):
    writer = make_manager(storage)
    writer.add(Blog(title="News", posts=[Post(title=title) for title in titles]))
    writer.persist_all()


def post_links(storage):
    rows = storage.select_rows("*", '"post"', order_by=[('"uid"', "ASC")])
    return [(row["title"], row["blog"], row["sorting"]) for row in rows]


def test_emptying_a_loaded_collection_detaches_every_child(tmp_path):
    storage = make_storage(tmp_path)
    seed_blog(storage, ["a", "b"])
    manager = make_manager(storage)
    blog = manager.get_object_by_identifier(1, Blog)
    assert len(blog.posts) == 2

    blog.posts = ObjectStorage()
    manager.persist_all()

    assert post_links(storage) == [("a", "", 0), ("b", "", 0)]
    assert storage.select_rows("*", '"blog"')[0]["posts"] == 0
    assert len(make_manager(storage).get_object_by_identifier(1, Blog).posts) == 0
    storage.close()


def test_emptying_an_unloaded_lazy_collection_detaches_every_child(tmp_path):
    storage = make_storage(tmp_path)
    seed_blog(storage, ["a", "b"])
    manager = make_manager(storage)
    blog = manager.get_object_by_identifier(1, LazyBlog)
    assert is_lazy_loaded(blog.get_properties()["posts"])

    blog.posts = ObjectStorage()
    manager.persist_all()

    assert post_links(storage) == [("a", "", 0), ("b", "", 0)]
    assert storage.select_rows("*", '"blog"')[0]["posts"] == 0
    assert len(make_manager(storage).get_object_by_identifier(1, Blog).posts) == 0
    storage.close()


def test_replacing_an_unloaded_lazy_collection_rewrites_junction_rows(tmp_path):
    storage = make_storage(tmp_path)
    seed_article(storage, ["first", "second"])
    manager = make_manager(storage)
    article = manager.get_object_by_identifier(1, LazyArticle)
    assert is_lazy_loaded(article.get_properties()["tags"])

    article.tags = ObjectStorage([Tag(name="third")])
    manager.persist_all()

    assert junction_rows(storage) == [(1, 3, 1)]
    assert storage.select_rows("*", '"tx_blog_domain_model_article"')[0]["tags"] == 1
    reloaded = make_manager(storage).get_object_by_identifier(1, Article)
    assert [tag.name for tag in reloaded.tags] == ["third"]
    storage.close()


def test_unparseable_uid_list_entries_match_nothing(tmp_path):
    storage = make_storage(tmp_path)
    storage.add_row("song", {"title": "one"})
    storage.add_row("song", {"title": "two"})
    storage.add_row("playlist", {"title": "Mixed", "songs": "song_1,2"})

    playlist = make_manager(storage).get_object_by_identifier(1, Playlist)
    assert [song.title for song in playlist.songs] == ["two"]
    storage.close()


def test_lazy_related_object_is_left_alone_until_needed(tmp_path):
    tracker = make_tracker()
    storage = make_storage(tmp_path, tracker=tracker)
    storage.add_row("writer", {"name": "Ada"})
    storage.add_row("essay", {"title": "On engines", "writer": 1})
    manager = make_manager(storage)
    essay = manager.get_object_by_identifier(1, Essay)
    assert is_lazy_loaded(essay.get_properties()["writer"])

    tracker.reset()
    essay.title = "On analytical engines"
    manager.persist_all()
    assert tracker.count("SELECT") == 0
    assert tracker.count("UPDATE") == 1
    assert storage.select_rows("*", '"essay"')[0]["writer"] == 1

    tracker.reset()
    assert manager.data_mapper.get_plain_value(essay.get_properties()["writer"]) == 1
    assert tracker.count("SELECT") == 1
    assert not is_lazy_loaded(essay.get_properties()["writer"])
    assert essay.writer.name == "Ada"
    assert not essay.is_dirty()
    storage.close()
