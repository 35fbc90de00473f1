"""
Unit tests for section catalog loading.
"""

import unittest

from fakes import SECTION_I, SECTION_XI, FakeClient, MemoryStateStore, item
from harvest_errors import HttpError
from harvest_models import CrawlState
from pause_controller import PauseController
from section_catalog import SectionCatalog, extract_section_meta

TOP_LEVEL = {
    None: [
        item(1, '01', 'Live animals', True, SECTION_I),
        item(2, '02', 'Meat', True, SECTION_I),
        item(50, '50', 'Silk', True, SECTION_XI),
    ]
}


class TestExtractSectionMeta(unittest.TestCase):

    def test_full_section(self):
        """Section metadata should supply key, label and name."""
        self.assertEqual(extract_section_meta(item(1, '01', 'Live animals', True, SECTION_I)),
                         {'key': 'I', 'label': 'Section I', 'name': 'Live animals; animal products'})

    def test_fallbacks(self):
        """Missing section metadata should fall back to the item."""
        meta = extract_section_meta({'id': 77, 'description': 'Misc'})
        self.assertEqual(meta, {'key': '77', 'label': 'Section 77', 'name': 'Misc'})

    def test_generated_key(self):
        """An item with nothing usable should still get a key."""
        meta = extract_section_meta({})
        self.assertTrue(meta['key'])
        self.assertEqual(meta['name'], meta['label'])


class TestSectionCatalog(unittest.IsolatedAsyncioTestCase):
    """Test loading and caching the catalog."""

    def setUp(self):
        self.store = MemoryStateStore()
        self.loaded = []

    def _catalog(self, client):
        self.client = client
        return SectionCatalog(client, self.store, PauseController(self.store),
                              on_loaded=self.loaded.append)

    async def test_groups_roots_by_section(self):
        """Top-level items should be grouped into sections in first-seen order."""
        catalog = self._catalog(FakeClient(TOP_LEVEL))
        state = CrawlState(country_code='DE')

        sections = await catalog.ensure_loaded(state)

        self.assertEqual(list(sections), ['I', 'XI'])
        self.assertEqual([r.id for r in sections['I'].roots], [1, 2])
        root = sections['I'].roots[0]
        self.assertEqual(root.path, ('Live animals; animal products',))
        self.assertEqual(root.section_label, 'Section I')
        self.assertEqual(state.all_section_keys, ['I', 'XI'])
        self.assertEqual(state.section_order, ['I', 'XI'])
        self.assertEqual(self.client.calls, [('DE', None)])
        self.assertEqual(self.store.snapshot()['allSectionKeys'], ['I', 'XI'])
        self.assertEqual(self.loaded, [state])

    async def test_respects_desired_keys(self):
        """The order should only include selected sections."""
        catalog = self._catalog(FakeClient(TOP_LEVEL))
        state = CrawlState(desired_section_keys=['XI'])
        await catalog.ensure_loaded(state)
        self.assertEqual(state.section_order, ['XI'])

    async def test_cached(self):
        """A loaded catalog should be reused unless a refresh is forced."""
        catalog = self._catalog(FakeClient(TOP_LEVEL))
        state = CrawlState()
        await catalog.ensure_loaded(state)
        await catalog.ensure_loaded(state)
        self.assertEqual(len(self.client.calls), 1)

        await catalog.ensure_loaded(state, force_refresh=True)
        self.assertEqual(len(self.client.calls), 2)

    async def test_failure_pauses(self):
        """A failed load should pause and return None."""
        catalog = self._catalog(FakeClient(TOP_LEVEL, failures={None: HttpError(403)}))
        state = CrawlState()

        self.assertIsNone(await catalog.ensure_loaded(state))
        self.assertTrue(state.paused)
        self.assertIn('HTTP 403', state.pause_reason)
        self.assertIsNone(state.sections)

    async def test_country_switch_during_load_discards(self):
        """A catalog for a country switched away from should be dropped."""
        state = CrawlState(country_code='FR')

        def switch(parent_id):
            state.country_code = 'DE'

        catalog = self._catalog(FakeClient(TOP_LEVEL, on_fetch=switch))

        self.assertIsNone(await catalog.ensure_loaded(state))
        self.assertIsNone(state.sections)
        self.assertFalse(state.paused)


if __name__ == '__main__':
    unittest.main()
