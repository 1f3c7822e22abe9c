"""profittracker._version

Single place for runtime versioning / build identification.

Handy with editable installs: confirms which project copy is actually
being executed (logged by the CLI at startup and shown in the dashboard footer).
"""

from __future__ import annotations

__version__ = "0.1.0"
__build__ = "2026-10-19"
