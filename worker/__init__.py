"""
Worker Module

Thin adapter over the external vanity key search tool.

This module provides:
- Startup check that the search tool is installed
- Grind invocation inside a per-iteration workspace
- Log capture of the combined worker output
- Public key derivation from a written keypair file

The search itself is entirely delegated to the external tool; nothing here
performs key generation.
"""

__version__ = "0.1.0"
