"""
Utility helpers for running the relmap blog example end-to-end.
"""

from __future__ import annotations

from typing import Any, Dict, List

from relmap import InMemoryTableConfiguration, PersistenceManager, SQLiteStorageBackend
from relmap.utils import get_logger

from .models import TABLES, Article, Author, Tag

logger = get_logger("examples.blog")

SCHEMA = """
CREATE TABLE IF NOT EXISTS "tx_blog_domain_model_author" (
    uid INTEGER PRIMARY KEY AUTOINCREMENT,
    pid INTEGER DEFAULT 0,
    deleted INTEGER DEFAULT 0,
    name TEXT,
    email TEXT
);
CREATE TABLE IF NOT EXISTS "tx_blog_domain_model_tag" (
    uid INTEGER PRIMARY KEY AUTOINCREMENT,
    pid INTEGER DEFAULT 0,
    deleted INTEGER DEFAULT 0,
    name TEXT
);
CREATE TABLE IF NOT EXISTS "tx_blog_domain_model_article" (
    uid INTEGER PRIMARY KEY AUTOINCREMENT,
    pid INTEGER DEFAULT 0,
    deleted INTEGER DEFAULT 0,
    tstamp INTEGER DEFAULT 0,
    crdate INTEGER DEFAULT 0,
    title TEXT,
    body TEXT,
    published INTEGER DEFAULT 0,
    author INTEGER DEFAULT 0,
    tags INTEGER DEFAULT 0
);
CREATE TABLE IF NOT EXISTS "tx_blog_article_tag_mm" (
    uid_local INTEGER,
    uid_foreign INTEGER,
    sorting INTEGER DEFAULT 0,
    sorting_foreign INTEGER DEFAULT 0
);
"""


def bootstrap_manager(dsn: str = "sqlite:///:memory:") -> PersistenceManager:
    """
    Create a SQLite-backed persistence manager and ensure the blog schema exists.
    """

    storage = SQLiteStorageBackend(dsn)
    storage.executescript(SCHEMA)
    return PersistenceManager(storage, InMemoryTableConfiguration(TABLES))


def seed_sample_data(manager: PersistenceManager) -> Dict[str, List[Article]]:
    """
    Persist two authors, three tags and a handful of articles.
    """

    alice = Author(name="Alice Carter", email="alice@example.com")
    brian = Author(name="Brian Kim", email="brian@example.com")
    orm, python, release = Tag(name="orm"), Tag(name="python"), Tag(name="release")

    articles = [
        Article(title="Introducing relmap", body="Mapping domain objects to rows.", published=True, author=alice),
        Article(title="Lazy relations", body="Load children on first access.", published=True, author=brian),
        Article(title="Draft: soft deletes", body="Work in progress.", published=False, author=alice),
    ]
    for tag in (release, orm):
        articles[0].tags.attach(tag)
    for tag in (orm, python):
        articles[1].tags.attach(tag)

    with manager:
        for article in articles:
            manager.add(article)
    logger.info("Seeded %s articles", len(articles))
    return {"authors": [alice, brian], "tags": [orm, python, release], "articles": articles}


def fetch_recent_articles(manager: PersistenceManager, limit: int = 5) -> List[Dict[str, Any]]:
    """
    Published articles, newest first, with author name and tag names.
    """

    query = manager.create_query(Article).filter(published=True).order_by("-uid").limit(limit)
    feed: List[Dict[str, Any]] = []
    for article in query.execute():
        feed.append(
            {
                "uid": article.uid,
                "title": article.title,
                "published": article.published,
                "author_name": article.author.name if article.author else None,
                "tags": [tag.name for tag in article.tags],
            }
        )
    return feed


def retire_article(manager: PersistenceManager, uid: int) -> None:
    """
    Soft-delete an article; its row stays with the deleted flag set.
    """

    article = manager.get_object_by_identifier(uid, Article)
    if article is None:
        return
    manager.remove(article)
    manager.persist_all()


def run_demo(dsn: str = "sqlite:///:memory:") -> List[Dict[str, Any]]:
    """
    Bootstrap the database, seed data, and return a rendered feed.
    """

    manager = bootstrap_manager(dsn=dsn)
    try:
        seed_sample_data(manager)
        manager.clear_state()
        return fetch_recent_articles(manager)
    finally:
        manager.storage.close()
