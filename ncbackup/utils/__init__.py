"""Utilities for ncbackup."""

from .commands import CommandResult, CommandRunner
from .logging import setup_logging

__all__ = ["CommandResult", "CommandRunner", "setup_logging"]
