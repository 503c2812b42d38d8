"""Service marketplace entitlement and verification engine.

This package contains the rules that decide who may see a provider's private
contact details, the administrator-driven verification workflow, the
subscription lifecycle and the change feed that keeps connected clients
observing a consistent view of that state.
"""

__version__ = "0.1.0"
