"""
Blog-style sample application showcasing relmap capabilities.
"""

from .demo import bootstrap_manager, fetch_recent_articles, retire_article, run_demo, seed_sample_data
from .models import Article, Author, Tag

__all__ = [
    "Article",
    "Author",
    "Tag",
    "bootstrap_manager",
    "seed_sample_data",
    "fetch_recent_articles",
    "retire_article",
    "run_demo",
]
