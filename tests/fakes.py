"""
In-memory collaborators for tests: a nomenclature tree served without
network access, a JSON-serializing state store and a recording sleep.
"""

import json

from harvest_errors import NetworkError
from harvest_models import CrawlState

SECTION_I = {'code': 'I', 'description': 'Section I', 'longDescription': 'Live animals; animal products'}
SECTION_XI = {'code': 'XI', 'description': 'Section XI', 'longDescription': 'Textiles and textile articles'}


def item(node_id, code='', description='', has_children=False, section=None):
    """Build a raw API node payload."""
    payload = {'id': node_id, 'code': code, 'description': description, 'hasChildren': has_children}
    if section is not None:
        payload['section'] = section
    return payload


class FakeClient:
    """
    Serves a tree from a {parent_id: [items]} mapping (None = top level).

    `failures` maps a parent id to an exception raised once for that fetch.
    `on_fetch` is called with the parent id before answering.
    """

    def __init__(self, tree=None, failures=None, pages=None, on_fetch=None):
        self.tree = tree or {}
        self.failures = dict(failures or {})
        self.pages = pages or {}
        self.on_fetch = on_fetch
        self.calls = []
        self.closed = False

    async def fetch_nodes(self, country_code, parent_id=None):
        self.calls.append((country_code, parent_id))
        if self.on_fetch:
            self.on_fetch(parent_id)
        if parent_id in self.failures:
            raise self.failures.pop(parent_id)
        return [dict(entry) for entry in self.tree.get(parent_id, [])]

    async def fetch_page(self, url):
        if url not in self.pages:
            raise NetworkError(f"Network error while loading {url}.")
        return self.pages[url]

    async def close(self):
        self.closed = True


class MemoryStateStore:
    """StateStore keeping the serialized blob in memory."""

    def __init__(self):
        self.blob = None
        self.saves = 0

    def load(self):
        if self.blob is None:
            return CrawlState()
        return CrawlState.model_validate_json(self.blob)

    def save(self, state):
        self.blob = state.model_dump_json(by_alias=True)
        self.saves += 1

    def clear(self):
        self.blob = None

    def snapshot(self):
        return json.loads(self.blob) if self.blob is not None else None


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
