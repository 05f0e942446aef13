"""Studio orchestration components.

This package intentionally avoids importing ``lyriclens.orchestrator.pipeline``
at module import time. Doing so can pre-load the target module before
``python -m lyriclens.orchestrator.pipeline`` executes it, which triggers
runpy's "found in sys.modules" RuntimeWarning.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lyriclens.orchestrator.pipeline import ServiceClients, StoryboardStudio, StudioConfig

__all__ = ["ServiceClients", "StoryboardStudio", "StudioConfig"]


def __getattr__(name: str):
    """Lazily expose studio symbols without eager pipeline imports."""
    if name in __all__:
        from lyriclens.orchestrator import pipeline

        return getattr(pipeline, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
