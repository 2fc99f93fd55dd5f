"""Background generation scheduling: tracker gates and the fire-and-forget scheduler."""

from .scheduler import GenerationScheduler
from .tracker import GenerationTracker

__all__ = ["GenerationScheduler", "GenerationTracker"]
