"""Rate limit counter stores.

The in-memory store is the only backend; the abstract interface keeps the
admission controller independent of where counters live.
"""
