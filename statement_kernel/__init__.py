"""
Statement Kernel

Shared infrastructure for the trial-balance statement engine:
- Typed, code-carrying exception hierarchy
- Structured JSON logging with request-scoped context
"""

__version__ = "0.1.0"
