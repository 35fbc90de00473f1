"""
Persistence layer for harvest crawl state.

This package provides the versioned CrawlState store, with a JSON-file
implementation behind a small protocol.
"""

from .crawl_state_store import JSONStateStore, StateStore

__all__ = ['JSONStateStore', 'StateStore']
