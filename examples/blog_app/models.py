"""
Domain model for the blog example application.
"""

from __future__ import annotations

from relmap import BooleanField, Entity, ObjectStorageField, RelatedField, StringField


class Author(Entity):
    name = StringField()
    email = StringField()

    class Meta:
        table = "tx_blog_domain_model_author"


class Tag(Entity):
    name = StringField()

    class Meta:
        table = "tx_blog_domain_model_tag"


class Article(Entity):
    title = StringField()
    body = StringField()
    published = BooleanField()
    author = RelatedField(Author)
    tags = ObjectStorageField(Tag)

    class Meta:
        table = "tx_blog_domain_model_article"


TABLES = {
    "tx_blog_domain_model_author": {
        "ctrl": {"delete": "deleted"},
        "columns": {
            "name": {"config": {"type": "input"}},
            "email": {"config": {"type": "input"}},
        },
    },
    "tx_blog_domain_model_tag": {
        "ctrl": {"delete": "deleted"},
        "columns": {"name": {"config": {"type": "input"}}},
    },
    "tx_blog_domain_model_article": {
        "ctrl": {"delete": "deleted", "tstamp": "tstamp", "crdate": "crdate"},
        "columns": {
            "title": {"config": {"type": "input"}},
            "body": {"config": {"type": "text"}},
            "published": {"config": {"type": "check"}},
            "author": {
                "config": {
                    "type": "select",
                    "foreign_table": "tx_blog_domain_model_author",
                    "maxitems": 1,
                }
            },
            "tags": {
                "config": {
                    "type": "select",
                    "foreign_table": "tx_blog_domain_model_tag",
                    "mm": "tx_blog_article_tag_mm",
                    "maxitems": 99,
                }
            },
        },
    },
}
