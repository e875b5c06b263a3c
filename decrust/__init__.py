"""Environment-aware backtraces and implicit error context: timestamps, threads, locations."""

__version__ = "0.1.1"
__all__ = ["backtrace", "implicit"]