"""
Patra Routing Desk

Authorization + lifecycle engine for official correspondence (patras)
routed between inward staff, outward staff, the head, the superintendent
and outside stations.
"""

__version__ = "1.0.0"
