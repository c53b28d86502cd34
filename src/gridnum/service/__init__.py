from .runtime import GameRuntime, RuntimePaths

__all__ = ["GameRuntime", "RuntimePaths"]
