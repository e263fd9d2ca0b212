"""Task selection and lifecycle engine.

This package holds the request/task model, the file-backed store, and the
pure functions that validate dependencies, maintain the task hierarchy,
drive status transitions and pick the next actionable task. :class:`TaskEngine`
in ``engine.py`` ties them together, one method per tool.
"""
