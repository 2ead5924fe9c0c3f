"""
Tools used by the core components

- pom_tool: minimal pom.xml generation and resource-section patching
- fallback_generator: deterministic plugin scaffold when the oracle fails
"""
from .pom_tool import derive_coordinates, generate_minimal_pom, ensure_resources_declared
from .fallback_generator import generate_fallback_actions

__all__ = [
    "derive_coordinates",
    "generate_minimal_pom",
    "ensure_resources_declared",
    "generate_fallback_actions",
]
