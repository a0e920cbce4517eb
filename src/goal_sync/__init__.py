"""
goal-sync: Keep project goal documents in sync with their tracking issues.

This package loads half-year milestone goal documents from a directory
tree and reconciles them against tracking issues in a remote issue
tracker, creating, updating, or closing issues so that re-running the
command always converges on the same remote state.
"""

__version__ = "1.0.0"
