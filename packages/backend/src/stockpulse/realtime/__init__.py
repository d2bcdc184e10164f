"""Real-time infrastructure — rooms + WebSocket.

Learn: Events flow through two independent paths:
1. Browser → /ws → ConnectionManager → RoomRegistry (who listens where)
2. Inventory service → Broadcaster → RoomRegistry snapshot → sockets

Everything is single-process and in memory. There's no broker between
the two paths; the registry is the only thing they share.
"""
