"""The assembled in-memory core.

``Hivemind`` bundles the shared entity store with its cross-reference
index and extractor, the investigation registry and the layout engines.
Commands and routes receive one instance rather than each piece.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from hivemind.config import Settings
from hivemind.entity.crossref import CrossReferenceIndex
from hivemind.entity.extractor import EntityExtractor
from hivemind.entity.store import EntityStore
from hivemind.investigation.registry import InvestigationRegistry
from hivemind.layout.engine import LayoutManager
from hivemind.layout.force import LayoutParams


@dataclass
class Hivemind:
    store: EntityStore
    xrefs: CrossReferenceIndex
    extractor: EntityExtractor
    registry: InvestigationRegistry
    layouts: LayoutManager
    layout_tick_seconds: float = 1 / 60

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
        layout_seed: int | None = None,
    ) -> Hivemind:
        store = EntityStore(
            max_entities=settings.MAX_ENTITIES,
            policy=settings.CAPACITY_POLICY,
            clock=clock,
        )
        return cls(
            store=store,
            xrefs=CrossReferenceIndex(store),
            extractor=EntityExtractor(
                store,
                context_radius=settings.CONTEXT_RADIUS,
                max_input_chars=settings.MAX_INPUT_CHARS,
                clock=clock,
            ),
            registry=InvestigationRegistry(clock=clock),
            layouts=LayoutManager(
                LayoutParams(max_iterations=settings.LAYOUT_MAX_ITERATIONS), seed=layout_seed,
            ),
            layout_tick_seconds=settings.LAYOUT_TICK_SECONDS,
        )

    def close(self) -> None:
        self.xrefs.close()
