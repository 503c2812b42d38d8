"""Shared pytest fixtures."""

from .core import *  # noqa: F401,F403
from .services import *  # noqa: F401,F403
