"""
Result sink.

Derives output records from leaf nodes and writes one pretty-printed JSON
file per completed section.
"""

import json
import logging
import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import List, Optional

from harvest_errors import StorageError
from harvest_models import Node, Record, Section

logger = logging.getLogger(__name__)

MAX_SLUG_LENGTH = 80


def join_path_descriptions(values) -> str:
    """
    Comma-join descriptions, dropping blanks and repeated values.

    The API sometimes repeats an ancestor's text on a child, so only the
    first occurrence of each value is kept.
    """
    deduped = []
    for value in values:
        trimmed = (value or '').strip()
        if trimmed and trimmed not in deduped:
            deduped.append(trimmed)
    return ', '.join(deduped)


def build_record(node: Node) -> Record:
    """Build the output record for a leaf node."""
    code = node.code or ''
    return Record(
        hs_code=code,
        description=join_path_descriptions([*node.path, node.description]),
        section=node.section_label,
        section_name=node.section_name,
        chapter=code[:2],
        heading=code[:4],
        subheading=code[4:],
    )


def sanitize_for_filename(value: Optional[str]) -> str:
    slug = re.sub(r'[^A-Za-z0-9]+', '_', value or '')
    slug = re.sub(r'_+', '_', slug).strip('_')
    return slug[:MAX_SLUG_LENGTH] or 'data'


def build_filename(country_code: str, section: Section, today: Optional[date] = None) -> str:
    """
    Build `<country>__<label>__<name>__<YYYY-MM-DD>.json`, lower-cased.

    Args:
        country_code: Taxonomy scope
        section: Completed section
        today: Date stamp (defaults to the current UTC date)
    """
    stamp = (today or datetime.now(timezone.utc).date()).isoformat()
    parts = [
        sanitize_for_filename(country_code),
        sanitize_for_filename(section.label or 'section'),
        sanitize_for_filename(section.name or 'data'),
        stamp,
    ]
    return f"{'__'.join(parts)}.json".lower()


class ResultSink:
    """Writes completed sections to the output directory."""

    def __init__(self, output_dir: str = "output"):
        self.output_dir = Path(output_dir)

    def emit(self, country_code: str, section: Section, records: List[Record]) -> Path:
        """
        Write a section's records to its own file.

        Returns:
            Path of the written file

        Raises:
            StorageError: If the file could not be written
        """
        file_path = self.output_dir / build_filename(country_code, section)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump([record.model_dump() for record in records], f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise StorageError(f"Could not write {file_path}: {e}") from e

        logger.info(f"Saved {len(records)} records for {section.label} -> {file_path.name}")
        return file_path
