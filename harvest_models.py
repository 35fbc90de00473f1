"""
Harvest data models.

Defines the taxonomy nodes, output records and the single persisted
CrawlState document. Persisted keys are camelCase; output records keep
their snake_case column names.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from harvester_config import DEFAULT_COUNTRY_CODE

SCHEMA_VERSION = 2

NodeId = Union[int, str]


class _StateModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Node(_StateModel):
    """One taxonomy entry. `path` holds ancestor descriptions, excluding itself."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: Optional[NodeId] = None
    code: str = ""
    has_children: bool = False
    description: str = ""
    path: tuple[str, ...] = ()
    section_key: str = ""
    section_label: str = ""
    section_name: str = ""

    @classmethod
    def from_payload(cls, item: dict[str, Any], path: tuple[str, ...],
                     section_key: str, section_label: str, section_name: str) -> Node:
        return cls(
            id=item.get("id"),
            code=str(item.get("code") or ""),
            has_children=bool(item.get("hasChildren")),
            description=str(item.get("description") or ""),
            path=path,
            section_key=section_key,
            section_label=section_label,
            section_name=section_name,
        )

    def child(self, item: dict[str, Any]) -> Node:
        """Build a child node from a raw API item, extending the ancestor path."""
        path = tuple(value for value in (*self.path, self.description) if value)
        return Node.from_payload(item, path, self.section_key, self.section_label, self.section_name)


class Section(_StateModel):
    key: str
    label: str
    name: str
    roots: list[Node] = Field(default_factory=list)


class Record(BaseModel):
    hs_code: str
    description: str
    section: str
    section_name: str
    chapter: str
    heading: str
    subheading: str


class NodeSnapshot(_StateModel):
    id: Optional[NodeId] = None
    description: str = ""
    section: str = ""


class LastError(_StateModel):
    message: str
    node: Optional[NodeSnapshot] = None


class CrawlState(_StateModel):
    """
    The single unit of durability.

    `queue` is a LIFO stack: the last element is the next node processed.
    """

    schema_version: int = SCHEMA_VERSION
    desired_section_keys: list[str] = Field(default_factory=list)
    sections: Optional[dict[str, Section]] = None
    all_section_keys: list[str] = Field(default_factory=list)
    section_order: list[str] = Field(default_factory=list)
    completed_sections: list[str] = Field(default_factory=list)
    current_section_key: Optional[str] = None
    queue: list[Node] = Field(default_factory=list)
    partial_results: list[Record] = Field(default_factory=list)
    paused: bool = False
    pause_reason: Optional[str] = None
    last_error: Optional[LastError] = None
    total_downloaded_count: int = Field(default=0, ge=0)
    country_code: str = DEFAULT_COUNTRY_CODE
    country_label: Optional[str] = None

    def reset(self, keep_country: bool = False) -> None:
        """Restore fresh defaults in place so every holder sees the reset."""
        fresh = CrawlState()
        if keep_country:
            fresh.country_code = self.country_code
            fresh.country_label = self.country_label
        for name in type(self).model_fields:
            setattr(self, name, getattr(fresh, name))

    def recompute_section_order(self) -> None:
        if not self.sections:
            self.section_order = []
            return

        base_order = self.all_section_keys or list(self.sections)
        desired = set(self.desired_section_keys)
        self.section_order = [
            key for key in base_order
            if key in self.sections and (not desired or key in desired)
        ]

    def mark_section_completed(self, key: str) -> None:
        if key not in self.completed_sections:
            self.completed_sections.append(key)

    def clear_section_progress(self) -> None:
        self.current_section_key = None
        self.queue = []
        self.partial_results = []

    def clear_progress(self) -> None:
        """Drop every progress field while keeping the loaded catalog."""
        self.completed_sections = []
        self.clear_section_progress()
        self.paused = False
        self.pause_reason = None
        self.total_downloaded_count = 0

    def invalidate_scope(self) -> None:
        """Forget everything tied to the previous country's node ids and codes."""
        self.sections = None
        self.all_section_keys = []
        self.section_order = []
        self.clear_progress()
        self.last_error = None
