from .tracker import PerformanceTracker

__all__ = ["PerformanceTracker"]
