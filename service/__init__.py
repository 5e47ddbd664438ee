"""
Service Module

Process wiring and command line interface for the grinder.

This module provides:
- Layered configuration (defaults, YAML, environment, CLI options)
- Startup tool check and graceful shutdown on SIGINT/SIGTERM
- Progress display and end-of-run summary
- Optional per-iteration JSONL metrics
- Operator commands for store setup and manual workspace recovery
"""

__version__ = "0.1.0"
