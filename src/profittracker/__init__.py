"""Bot-Profit-Tracker.

Verfolgt Profit/Loss-Kennzahlen automatischer Trading-Bots, die aus
Screenshots extrahiert werden, und bereitet sie für Dashboard und Reports auf.
"""

from ._version import __version__, __build__

__all__ = ["__version__", "__build__"]
