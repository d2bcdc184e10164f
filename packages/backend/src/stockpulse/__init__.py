"""StockPulse — inventory tracking with live updates.

Session-based login gates the page views and the JSON API. Inventory
changes are pushed to connected browsers over a WebSocket, scoped by room.
"""

__version__ = "0.1.0"
