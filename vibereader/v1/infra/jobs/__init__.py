"""
Background job processing.

This package provides the database-backed job system:
- Job store with an atomic claim and lease expiry
- Queue API used by producers, the worker and the HTTP surface
- Scheduler that enqueues refreshes for stale feeds
- Worker that dispatches claimed jobs to registered handlers
"""
