"""Module graph, variants and propagation."""

from soong_sanitize.graph.module_graph import ModuleGraph
from soong_sanitize.graph.variants import Variant, VariantCache, VariantEdge, VariantKey
from soong_sanitize.graph.propagation import PropagationEngine, PropagationResult

__all__ = [
    "ModuleGraph",
    "Variant",
    "VariantCache",
    "VariantEdge",
    "VariantKey",
    "PropagationEngine",
    "PropagationResult",
]
