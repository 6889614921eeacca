"""xpfetch - content resolution and query composition for Enonic XP Guillotine."""

from xpfetch.engine.fetcher import ContentFetcher, build_content_fetcher

__all__ = ["ContentFetcher", "build_content_fetcher"]
