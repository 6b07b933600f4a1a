"""
Guest Review Hub Orchestrator Module
====================================

Operational entry points around the ingestion pipeline.

Components:
    - logging_config: Structured logging setup shared by the API and the CLI
    - cli: Sync, stats and serve commands

Usage:
    python -m src.orchestrator.cli sync --source hostaway
"""

from .logging_config import setup_logging, JSONFormatter, bind

__all__ = [
    "setup_logging",
    "JSONFormatter",
    "bind",
]
