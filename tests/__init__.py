"""
apkclient Test Suite.

This package contains:
- unit/: Unit tests (MemFS, DirFS on tmp_path, httpx.MockTransport)
- integration/: Whole-root bootstrap tests wiring every component
"""
