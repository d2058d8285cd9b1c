"""
Core module for application configuration and utilities.

The adaptive-testing engine itself lives in ``cat_engine.core.cat``. Its
estimation, selection and stopping functions take tunables as arguments;
only the ``CATSessionManager`` facade reads settings.
"""
from .config import settings

__all__ = ["settings"]
