"""
State management for the harvest crawl.

Persists the single versioned CrawlState blob. Persistence is best effort:
read and write failures are logged, never raised to the crawl loop.
Designed with an abstract interface so the JSON file can be swapped for
another key-value store.
"""

from typing import Protocol
from pathlib import Path
import json
import logging
import os

from pydantic import ValidationError

from harvest_errors import StorageError
from harvest_models import CrawlState, SCHEMA_VERSION

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    """
    Abstract interface for crawl state storage.
    """

    def load(self) -> CrawlState:
        """Return the stored state, or fresh defaults if unusable."""
        ...

    def save(self, state: CrawlState) -> None:
        """Persist state (best effort)."""
        ...

    def clear(self) -> None:
        """Remove the stored state (best effort)."""
        ...


class JSONStateStore:
    """
    JSON-file implementation of StateStore.

    Writes go to a temporary sibling file that is then moved over the
    blob, so a killed process leaves either the old or the new document.
    """

    def __init__(self, state_file: str = "output/harvest_state.json"):
        """
        Initialize the JSON state store.

        Args:
            state_file: Path of the state blob
        """
        self.state_file = Path(state_file)
        self._tmp_file = self.state_file.with_name(self.state_file.name + ".tmp")

    def _read(self) -> str:
        try:
            return self.state_file.read_text(encoding='utf-8')
        except OSError as e:
            raise StorageError(f"Could not read {self.state_file}: {e}") from e

    def _write(self, payload: str) -> None:
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._tmp_file, 'w', encoding='utf-8') as f:
                f.write(payload)
            os.replace(self._tmp_file, self.state_file)
        except OSError as e:
            raise StorageError(f"Could not write {self.state_file}: {e}") from e

    def load(self) -> CrawlState:
        """
        Load the stored state.

        A missing, unparsable, invalid or version-mismatched blob yields a
        fresh default state; nothing is merged from an incompatible shape.

        Returns:
            CrawlState instance
        """
        if not self.state_file.exists():
            return CrawlState()

        try:
            data = json.loads(self._read())
        except StorageError as e:
            logger.warning(f"Failed to load saved state, starting fresh: {e}")
            return CrawlState()
        except json.JSONDecodeError as e:
            logger.warning(f"Saved state is not valid JSON, starting fresh: {e}")
            return CrawlState()

        if not isinstance(data, dict) or data.get('schemaVersion') != SCHEMA_VERSION:
            logger.info(f"Discarding saved state with incompatible schema version "
                        f"(expected {SCHEMA_VERSION})")
            return CrawlState()

        try:
            return CrawlState.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Saved state failed validation, starting fresh: {e}")
            return CrawlState()

    def save(self, state: CrawlState) -> None:
        """Persist state to disk."""
        try:
            self._write(state.model_dump_json(by_alias=True, indent=2))
        except StorageError as e:
            logger.warning(f"Unable to persist state: {e}")

    def clear(self) -> None:
        """Delete the stored blob."""
        for file in [self.state_file, self._tmp_file]:
            try:
                file.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Unable to clear stored state {file}: {e}")
