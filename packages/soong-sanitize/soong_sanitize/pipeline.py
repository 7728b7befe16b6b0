"""Settings-driven entry point.

Wires the process settings (``SOONG_SANITIZE_*``) into one propagation run:
logging setup, product variables, module declarations and worker count.

Usage:
    from soong_sanitize.pipeline import propagate_file

    result = propagate_file("out/soong/modules.yaml")
"""

from __future__ import annotations

from pathlib import Path

from soong_sanitize.config import SanitizeSettings, get_settings
from soong_sanitize.graph.module_graph import ModuleGraph
from soong_sanitize.graph.propagation import PropagationEngine, PropagationResult
from soong_sanitize.logging import get_logger, setup_logging
from soong_sanitize.policy.configuration import PolicyConfiguration

logger = get_logger(__name__)


def propagate_file(
    modules_file: str | Path,
    settings: SanitizeSettings | None = None,
    host: bool = False,
) -> PropagationResult:
    """Propagate sanitizer variants over a module declarations file.

    Args:
        modules_file: YAML/JSON file with a ``modules`` list
        settings: Process settings; ``get_settings()`` by default
        host: Declare the modules (and runtime libraries) as host modules

    Raises:
        PolicyLoadError: Unreadable or invalid product variables
        GraphError: Unreadable or invalid module declarations
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    config = PolicyConfiguration.from_file(settings.product_variables_file)
    graph = ModuleGraph.from_file(modules_file, host=host)
    graph.add_runtime_libraries(config.runtimes, host=host)

    logger.info(
        "propagation_requested",
        modules_file=str(modules_file),
        product_variables=str(settings.product_variables_file) if settings.product_variables_file else None,
        max_workers=settings.max_workers,
    )
    return PropagationEngine(graph, config, max_workers=settings.max_workers).run()
