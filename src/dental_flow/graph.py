"""FlowGraphStore - loads the YAML step graphs into typed models.

This is the single source of truth for step data at runtime.  The store is
loaded once at startup and provides lookup by context and step id.

Usage::

    store = FlowGraphStore()        # defaults to the bundled graphs/ dir
    store.load()                    # parse intake.yaml and renewal.yaml

    graph = store.get_graph("intake")
    step = store.get_step("renewal", "confirm-address")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from dental_flow.models.graph import FlowGraph, StepDefinition

logger = logging.getLogger(__name__)

# Bundled graph definitions shipped as package data.
DEFAULT_GRAPH_DIR = Path(__file__).resolve().parent / "graphs"

# Context -> file name under the graph directory.
GRAPH_FILES: dict[str, str] = {
    "intake": "intake.yaml",
    "renewal": "renewal.yaml",
}


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class FlowGraphStore:
    """Loads every step graph and provides typed lookup.

    Attributes populated after :meth:`load`:

        graphs - dict[context, FlowGraph]
    """

    def __init__(self, graph_dir: str | Path | None = None) -> None:
        self._base = Path(graph_dir) if graph_dir is not None else DEFAULT_GRAPH_DIR
        self.graphs: dict[str, FlowGraph] = {}

    def load(self) -> None:
        """Parse all graph files.  Call this once at startup.

        Raises ``FileNotFoundError`` if a graph file is missing and
        ``pydantic.ValidationError`` if a graph references unknown steps or
        is otherwise malformed.
        """
        for context, filename in GRAPH_FILES.items():
            graph = FlowGraph.model_validate(load_yaml(self._base / filename))
            if graph.context != context:
                raise ValueError(
                    f"{filename} declares context {graph.context!r}, expected {context!r}"
                )
            self.graphs[context] = graph
        logger.info(
            "FlowGraphStore loaded: %s",
            ", ".join(f"{c}={len(g.steps)} steps" for c, g in self.graphs.items()),
        )

    def get_graph(self, context: str) -> FlowGraph:
        """Return the graph for *context*.  Raises ``KeyError`` if not loaded."""
        try:
            return self.graphs[context]
        except KeyError:
            raise KeyError(f"No step graph loaded for context: {context}") from None

    def get_step(self, context: str, step_id: str) -> StepDefinition:
        return self.get_graph(context).step(step_id)
