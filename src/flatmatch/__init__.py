"""flatmatch - rental listing alerts for the Geneva area.

Resolves listing locations to canonical zones, scores listings against
each user's strict and comfort criteria, and polls recent listings to
alert every matching user exactly once.
"""

__version__ = "0.1.0"
