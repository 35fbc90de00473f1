"""
Pause handling.

Turns a failure into a human-readable pause reason and records the pause
durably. This is the only place that sets `paused`; the crawl loop checks
the flag instead of unwinding through exceptions.
"""

import logging
from typing import Callable, Optional

from harvest_models import CrawlState, LastError, Node, NodeSnapshot

logger = logging.getLogger(__name__)

UNKNOWN_REASON = "Harvest paused due to an unknown issue."


def classify(error: Optional[BaseException]) -> str:
    """
    Map an error to a pause reason.

    Precedence: HTTP 429, HTTP 403, any other status, then the error
    message itself.
    """
    if error is None:
        return UNKNOWN_REASON

    status = getattr(error, 'status', None)
    if status == 429:
        return "Rate limited (HTTP 429). Complete any verification and resume."
    if status == 403:
        return "Access denied (HTTP 403). Complete the verification challenge and resume."
    if status:
        return f"Paused due to HTTP {status}. Complete verification and resume."

    return str(error) or UNKNOWN_REASON


class PauseController:
    """Records pauses on a CrawlState and persists them in one step."""

    def __init__(self, store, on_pause: Optional[Callable[[CrawlState], None]] = None):
        self.store = store
        self.on_pause = on_pause

    def pause(self, state: CrawlState, error: Optional[BaseException],
              node: Optional[Node] = None) -> str:
        """
        Pause the crawl.

        Args:
            state: Crawl state to mutate
            error: Failure that triggered the pause
            node: Node being processed when it failed, if any

        Returns:
            The pause reason
        """
        reason = classify(error)

        state.paused = True
        state.pause_reason = reason
        state.last_error = LastError(
            message=reason,
            node=NodeSnapshot(
                id=node.id,
                description=node.description,
                section=node.section_label,
            ) if node else None,
        )
        self.store.save(state)

        if node:
            logger.warning(f"Paused at node {node.id} ({node.description}): {reason}")
        else:
            logger.warning(f"Paused: {reason}")

        if self.on_pause:
            self.on_pause(state)

        return reason
