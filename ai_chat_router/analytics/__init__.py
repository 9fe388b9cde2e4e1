"""
Analytics for routing and usage events.

The emitter is a best-effort sink; the dashboard aggregates what it wrote.
"""
