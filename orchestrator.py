"""
Harvest orchestrator.

Owns the CrawlState and drives the section loop: loads the catalog, picks
the next section, hands it to the traversal engine and handles completion,
pauses and country switches. Everything runs on one asyncio event loop;
state is only touched between the engine's await points, so commands
arriving mid-run need no locking.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import harvester_config
from extractors.country_options import extract_country_options, label_for, selected_country
from harvest_errors import HarvestError, SelectionError
from harvest_models import CrawlState, Section
from nomenclature_client import NomenclatureClient
from pause_controller import PauseController
from persistence import JSONStateStore
from result_sink import ResultSink
from section_catalog import SectionCatalog
from traversal_engine import COMPLETED, INTERRUPTED, PAUSED, TraversalEngine

logger = logging.getLogger(__name__)

ALL_SECTIONS = '__all__'
BUSY = 'busy'

StatusListener = Callable[[Dict[str, Any]], None]


class Orchestrator:
    """
    Runs a resumable harvest over every selected section of one country.
    """

    def __init__(self, client, store, sink, state: Optional[CrawlState] = None,
                 min_delay_ms: Optional[int] = None, max_delay_ms: Optional[int] = None,
                 sleep=asyncio.sleep, countries: Optional[List[Dict[str, Any]]] = None,
                 country_page_url: Optional[str] = None):
        """
        Initialize the orchestrator.

        Args:
            client: NomenclatureClient
            store: StateStore holding the CrawlState blob
            sink: ResultSink for completed sections
            state: Initial state (None = load from store)
            min_delay_ms: Politeness delay lower bound
            max_delay_ms: Politeness delay upper bound
            sleep: Coroutine function used for delays
            countries: Static country options (None = read the host page)
            country_page_url: Host page carrying the country <select>
        """
        self.client = client
        self.store = store
        self.sink = sink
        self.state = state if state is not None else store.load()

        self.pause_controller = PauseController(
            store, on_pause=lambda s: self.notify(paused=True, pauseReason=s.pause_reason)
        )
        self.catalog = SectionCatalog(client, store, self.pause_controller,
                                      on_loaded=lambda s: self.notify())
        self.engine = TraversalEngine(
            client, store, sink, self.pause_controller,
            min_delay_ms=min_delay_ms, max_delay_ms=max_delay_ms,
            sleep=sleep, on_progress=self._maybe_send_progress,
        )

        self.is_running = False
        self._task: Optional[asyncio.Task] = None
        # Bumped by clear() and country switches; an active run stops when it changes
        self._generation = 0
        self._run_generation = 0
        self._follow_up_queued = False
        self._listeners: List[StatusListener] = []
        self._last_progress_sent_at = 0.0

        self._static_countries = countries
        self._country_options: List[Dict[str, Any]] = [
            {'value': c['value'], 'label': c.get('label') or c['value']} for c in countries or []
        ]
        self._page_selected: Optional[str] = None
        self.country_page_url = country_page_url or harvester_config.COUNTRY_PAGE_URL

    @classmethod
    def from_profile(cls, profile, output_dir: Optional[str] = None,
                     state_file: Optional[str] = None) -> 'Orchestrator':
        """
        Wire client, store and sink from a HarvestProfile.

        Args:
            profile: HarvestProfile
            output_dir: Overrides profile.output.output_dir
            state_file: Overrides profile.output.state_file
        """
        client = NomenclatureClient(endpoint=profile.endpoint)
        store = JSONStateStore(state_file or profile.output.state_file)
        sink = ResultSink(output_dir or profile.output.output_dir)
        return cls(
            client, store, sink,
            min_delay_ms=profile.delay.min_ms,
            max_delay_ms=profile.delay.max_ms,
            countries=profile.countries,
        )

    # --- Status ---

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, **extra) -> None:
        payload = {**self.status(), **extra}
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception as e:
                logger.warning(f"Status listener failed: {e}")

    def _maybe_send_progress(self, state: CrawlState, force: bool = False) -> None:
        now = time.monotonic()
        if not force and (now - self._last_progress_sent_at) * 1000 < harvester_config.PROGRESS_THROTTLE_MS:
            return
        self._last_progress_sent_at = now
        self.notify()

    def status(self) -> Dict[str, Any]:
        state = self.state
        sections = state.sections or {}
        current = sections.get(state.current_section_key) if state.current_section_key else None
        country_code = state.country_code or harvester_config.DEFAULT_COUNTRY_CODE

        return {
            'running': self.is_running,
            'paused': state.paused,
            'pauseReason': state.pause_reason,
            'currentSection': {
                'key': current.key,
                'label': current.label,
                'name': current.name,
                'processed': len(state.partial_results),
                'remaining': len(state.queue),
            } if current else None,
            'completedSections': [
                sections[key].label if key in sections else key
                for key in state.completed_sections
            ],
            'totalSections': len(state.section_order),
            'desiredSectionKeys': list(state.desired_section_keys),
            'totalDownloadedCount': state.total_downloaded_count,
            'hasState': state.sections is not None,
            'lastError': state.last_error.model_dump(by_alias=True) if state.last_error else None,
            'country': {
                'code': country_code,
                'label': state.country_label or country_code,
            },
        }

    def sections_list(self) -> List[Dict[str, str]]:
        sections = self.state.sections or {}
        return [
            {'key': sections[key].key, 'label': sections[key].label, 'name': sections[key].name}
            for key in self.state.section_order if key in sections
        ]

    async def load_sections(self, force_refresh: bool = False) -> Dict[str, Any]:
        """Load (or reuse) the section catalog and list it."""
        sections = await self.catalog.ensure_loaded(self.state, force_refresh)
        if sections is None:
            if self.state.paused:
                return {'ok': False, 'error': self.state.pause_reason}
            return {'ok': False, 'error': 'Country changed while loading sections; try again.'}
        return {'ok': True, 'sections': self.sections_list()}

    # --- Country scope ---

    async def countries(self) -> Dict[str, Any]:
        """
        List selectable countries.

        Static options from the profile win; otherwise the host page's
        destination <select> is parsed. A failed page fetch keeps the
        previously cached options. `pageSelected` is the option the host
        page pre-selects, reported without switching the crawl's country.
        """
        if self._static_countries is None:
            try:
                html = await self.client.fetch_page(self.country_page_url)
                options = extract_country_options(html)
                if options:
                    self._country_options = options
                    self._page_selected = selected_country(options)
                else:
                    logger.warning(f"No country options found on {self.country_page_url}")
            except HarvestError as e:
                logger.warning(f"Could not read country list: {e}")

        selected = self.state.country_code
        return {
            'countries': [
                {'value': o['value'], 'label': o['label'], 'selected': o['value'] == selected}
                for o in self._country_options
            ],
            'selected': selected,
            'label': self.state.country_label or selected,
            'pageSelected': self._page_selected,
        }

    def update_country(self, country_code: Optional[str], label: Optional[str] = None) -> bool:
        """
        Switch the taxonomy scope.

        A different code invalidates the catalog and all progress, since
        node ids and codes are country-specific. A label-only change is
        just persisted.

        Returns:
            True if the country code changed
        """
        state = self.state
        normalized = (country_code or '').strip().upper() or harvester_config.DEFAULT_COUNTRY_CODE
        previous = state.country_code or harvester_config.DEFAULT_COUNTRY_CODE
        changed = normalized != previous

        computed_label = (label or label_for(self._country_options, normalized)
                          or (None if changed else state.country_label) or normalized)
        label_changed = computed_label != (state.country_label or '')

        state.country_code = normalized
        state.country_label = computed_label

        if changed:
            logger.info(f"Country changed {previous} -> {normalized}; discarding crawl progress")
            state.invalidate_scope()
            self._generation += 1

        self.store.save(state)

        if changed or label_changed:
            self.notify()

        return changed

    # --- Commands ---

    def launch(self) -> asyncio.Task:
        """Start run() in the background unless a run is already active."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        elif self._run_generation != self._generation and not self._follow_up_queued:
            # The active run will stop after a clear/country switch; run again once it has
            self._follow_up_queued = True
            self._task = asyncio.create_task(self._run_after(self._task))
        return self._task

    async def _run_after(self, previous: asyncio.Task) -> str:
        await asyncio.wait([previous])
        self._follow_up_queued = False
        return await self.run()

    def start(self, section_key: Optional[str] = None, restart: bool = False) -> asyncio.Task:
        """
        Start a fresh pass over the selected sections.

        Args:
            section_key: Single section to harvest, ALL_SECTIONS for every
                section, None to keep the current selection
            restart: Reset the whole state first
        """
        state = self.state
        if restart:
            state.reset(keep_country=True)

        if section_key and section_key != ALL_SECTIONS:
            state.desired_section_keys = [section_key]
        elif section_key == ALL_SECTIONS:
            state.desired_section_keys = []

        state.recompute_section_order()
        state.clear_progress()
        self.store.save(state)
        self.notify()

        return self.launch()

    def resume(self) -> asyncio.Task:
        state = self.state
        if state.paused:
            state.paused = False
            state.pause_reason = None
            self.store.save(state)
            self.notify()
        return self.launch()

    def clear(self) -> None:
        """Forget all progress and the stored blob, keeping the selected country."""
        self.state.reset(keep_country=True)
        self._generation += 1
        self.store.clear()
        self.store.save(self.state)
        logger.info("Crawl state cleared")
        self.notify()

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self.client.close()

    # --- Main loop ---

    async def run(self) -> str:
        """
        Harvest until every selected section is done or the crawl pauses.

        Returns:
            COMPLETED, PAUSED, INTERRUPTED, or BUSY if a run was already active
        """
        if self.is_running:
            logger.info("Harvest already running")
            return BUSY

        self.is_running = True
        self._run_generation = self._generation
        self.notify()
        outcome = PAUSED
        try:
            outcome = await self._run_loop()
        except Exception as e:
            logger.exception("Harvest loop failed")
            self.pause_controller.pause(self.state, e)
            outcome = PAUSED
        finally:
            self.is_running = False
            self.store.save(self.state)
            self.notify()

        return outcome

    async def _run_loop(self) -> str:
        state = self.state
        generation = self._run_generation
        logger.info(f"Starting harvest for {state.country_code}")

        if state.sections is not None:
            state.recompute_section_order()
            self.store.save(state)

        while True:
            if state.paused:
                logger.info(f"Paused: {state.pause_reason}")
                return PAUSED

            if self._generation != generation:
                logger.info("Crawl state was cleared or the country changed; stopping")
                return INTERRUPTED

            # Not loaded yet, or a restart dropped the catalog mid-run
            if state.sections is None:
                if await self.catalog.ensure_loaded(state) is None:
                    return PAUSED if state.paused else INTERRUPTED
                continue

            if state.desired_section_keys and not state.section_order:
                requested = ', '.join(state.desired_section_keys)
                self.pause_controller.pause(state, SelectionError(
                    f"No section matches the selection ({requested}) for {state.country_code}. "
                    f"Start another section or all sections."
                ))
                return PAUSED

            section = self._select_next_section()
            if section is None:
                self._finish()
                return COMPLETED

            outcome = await self.engine.run_section(state, section)
            if outcome == PAUSED:
                return PAUSED
            if outcome == COMPLETED:
                self.notify()

    def _select_next_section(self) -> Optional[Section]:
        state = self.state
        sections = state.sections or {}

        if state.current_section_key and state.current_section_key in sections:
            return sections[state.current_section_key]

        for key in state.section_order:
            if key in state.completed_sections:
                continue

            section = sections.get(key)
            if section is None:
                state.mark_section_completed(key)
                self.store.save(state)
                continue

            # Roots are pushed in reverse so they are popped in catalog order
            state.current_section_key = key
            state.queue = [root.model_copy(deep=True) for root in reversed(section.roots)]
            state.partial_results = []
            self.store.save(state)
            return section

        return None

    def _finish(self) -> None:
        state = self.state
        summary = {
            'sectionsProcessed': len(state.completed_sections),
            'totalDownloadedCount': state.total_downloaded_count,
            'country': state.country_code,
        }

        logger.info("=" * 60)
        logger.info("Harvest complete!")
        logger.info(f"Country: {state.country_code}")
        logger.info(f"Sections processed: {summary['sectionsProcessed']}")
        logger.info(f"Records downloaded: {summary['totalDownloadedCount']}")
        logger.info(f"Output directory: {self.sink.output_dir}")
        logger.info("=" * 60)

        self.notify(completed=True, summary=summary)

        # Completion starts the next run from scratch; counters are not kept
        state.reset(keep_country=True)
        self.store.clear()
        self.store.save(state)
