"""Task automation engine - rules, recurrence and workload insights."""

__version__ = "0.1.0"
