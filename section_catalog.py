"""
Section catalog.

Loads the top-level taxonomy for the current country once and partitions
it into ordered sections, each holding its root nodes.
"""

import logging
import uuid
from typing import Any, Callable, Dict, Optional

from harvest_errors import HarvestError
from harvest_models import CrawlState, Node, Section

logger = logging.getLogger(__name__)


def extract_section_meta(item: Dict[str, Any]) -> Dict[str, str]:
    """
    Derive (key, label, name) for the section an item belongs to.

    The first non-empty candidate wins for each field.
    """
    section = item.get('section') or {}
    key = (section.get('code') or section.get('id') or section.get('description')
           or item.get('id') or uuid.uuid4().hex)
    key = str(key)
    label = section.get('description') or section.get('name') or f"Section {key}"
    name = section.get('longDescription') or item.get('name') or item.get('description') or label
    return {'key': key, 'label': str(label), 'name': str(name)}


class SectionCatalog:
    """Loads and caches the section list on the crawl state."""

    def __init__(self, client, store, pause_controller,
                 on_loaded: Optional[Callable[[CrawlState], None]] = None):
        self.client = client
        self.store = store
        self.pause_controller = pause_controller
        self.on_loaded = on_loaded

    async def ensure_loaded(self, state: CrawlState,
                            force_refresh: bool = False) -> Optional[Dict[str, Section]]:
        """
        Make sure `state.sections` is populated.

        Args:
            state: Crawl state to fill
            force_refresh: Refetch even if sections are cached

        Returns:
            The sections mapping, or None if loading failed and the crawl
            was paused
        """
        if not force_refresh and state.sections:
            return state.sections

        country_code = state.country_code
        logger.info(f"Loading section list for {country_code}")

        try:
            items = await self.client.fetch_nodes(country_code)
        except HarvestError as e:
            self.pause_controller.pause(state, e)
            return None

        if state.country_code != country_code:
            logger.info(f"Country changed to {state.country_code} while loading sections; "
                        f"discarding catalog for {country_code}")
            return None

        sections: Dict[str, Section] = {}
        order = []

        for item in items:
            meta = extract_section_meta(item)
            if meta['key'] not in sections:
                sections[meta['key']] = Section(key=meta['key'], label=meta['label'], name=meta['name'])
                order.append(meta['key'])

            path = (meta['name'],) if meta['name'] else ()
            sections[meta['key']].roots.append(
                Node.from_payload(item, path, meta['key'], meta['label'], meta['name'])
            )

        state.sections = sections
        state.all_section_keys = order
        state.recompute_section_order()
        self.store.save(state)

        logger.info(f"  Found {len(order)} sections ({len(items)} root nodes)")

        if self.on_loaded:
            self.on_loaded(state)

        return sections
