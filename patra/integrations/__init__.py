"""
Integrations Package

Client for the authoritative letter store.
"""

from patra.integrations.patra_api import PatraApiClient

__all__ = [
    'PatraApiClient',
]
