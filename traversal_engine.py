"""
Traversal engine - resumable depth-first expansion of one section.

Each internal node needs a network round trip to expand, so the traversal
uses an explicit stack stored on the CrawlState instead of recursion. The
unfinished work of a section is fully described by (section key, stack,
accumulated records), and every push/pop is a valid persistence point.
"""

import asyncio
import logging
import random
from typing import Callable, Optional

import harvester_config
from harvest_errors import StorageError
from harvest_models import CrawlState, Node, Section
from result_sink import build_record

logger = logging.getLogger(__name__)

COMPLETED = 'completed'
PAUSED = 'paused'
INTERRUPTED = 'interrupted'


class TraversalEngine:
    """
    Pops nodes off a section's stack until it is empty or the crawl pauses.
    """

    def __init__(self, client, store, sink, pause_controller,
                 min_delay_ms: Optional[int] = None, max_delay_ms: Optional[int] = None,
                 sleep=asyncio.sleep,
                 on_progress: Optional[Callable[[CrawlState], None]] = None):
        """
        Initialize the engine.

        Args:
            client: NomenclatureClient (or anything with fetch_nodes)
            store: StateStore used after every state change
            sink: ResultSink for completed sections
            pause_controller: PauseController receiving failures
            min_delay_ms: Lower bound of the politeness delay
            max_delay_ms: Upper bound of the politeness delay
            sleep: Coroutine function used for the delay
            on_progress: Called after each processed node
        """
        self.client = client
        self.store = store
        self.sink = sink
        self.pause_controller = pause_controller
        self.min_delay_ms = harvester_config.MIN_DELAY_MS if min_delay_ms is None else min_delay_ms
        self.max_delay_ms = harvester_config.MAX_DELAY_MS if max_delay_ms is None else max_delay_ms
        self.sleep = sleep
        self.on_progress = on_progress

    async def _politeness_delay(self) -> None:
        delay_ms = random.randint(self.min_delay_ms, self.max_delay_ms)
        await self.sleep(delay_ms / 1000)

    async def _process_node(self, state: CrawlState, node: Node) -> None:
        if not node.has_children:
            if node.code:
                state.partial_results.append(build_record(node))
                self.store.save(state)
            return

        children = await self.client.fetch_nodes(state.country_code, parent_id=node.id)
        await self._politeness_delay()

        if state.current_section_key != node.section_key:
            logger.info(f"  Discarding {len(children)} children of {node.id}: section is no longer current")
            return

        # Reverse push so the first child in API order is popped next
        for item in reversed(children):
            state.queue.append(node.child(item))

        self.store.save(state)

    def _complete_section(self, state: CrawlState, section: Section) -> None:
        count = len(state.partial_results)
        if count:
            self.sink.emit(state.country_code, section, state.partial_results)
            state.total_downloaded_count += count

        state.mark_section_completed(section.key)
        state.clear_section_progress()
        self.store.save(state)
        logger.info(f"Section {section.label} completed ({count} records)")

    async def run_section(self, state: CrawlState, section: Section) -> str:
        """
        Process a section until its stack is exhausted or the crawl pauses.

        Args:
            state: Crawl state whose queue belongs to `section`
            section: Section being traversed

        Returns:
            COMPLETED, PAUSED, or INTERRUPTED if the section stopped being
            current (scope switch, clear or restart during a fetch)
        """
        logger.info(f"Processing section {section.label}: {section.name}")

        while state.queue:
            if state.paused:
                return PAUSED
            if state.current_section_key != section.key:
                return INTERRUPTED

            node = state.queue.pop()

            try:
                await self._process_node(state, node)
            except asyncio.CancelledError:
                state.queue.append(node)
                raise
            except Exception as e:
                if state.current_section_key != section.key:
                    logger.info(f"  Ignoring failure for {node.id}: section is no longer current")
                    return INTERRUPTED
                # The node was never processed; put it back on top
                state.queue.append(node)
                self.pause_controller.pause(state, e, node)
                return PAUSED

            if self.on_progress:
                self.on_progress(state)

        if state.paused:
            return PAUSED
        if state.current_section_key != section.key:
            return INTERRUPTED

        try:
            self._complete_section(state, section)
        except StorageError as e:
            self.pause_controller.pause(state, e)
            return PAUSED

        return COMPLETED
