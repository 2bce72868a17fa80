"""
Snapkeeper Test Suite.

This package contains:
- unit/: Unit tests (temporary directories, injected clock, no background threads)
- integration/: Integration tests (real APScheduler executor, on-disk snapshot trees)
"""
