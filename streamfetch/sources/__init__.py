from .http import HttpSource

__all__ = ["HttpSource"]
