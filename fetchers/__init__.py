# fetchers/__init__.py
from .cima import FeedError, FeedResult, fetch_all_shortages

__all__ = ["FeedError", "FeedResult", "fetch_all_shortages"]
