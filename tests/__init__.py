"""
Monkeep backup engine test suite.

This package contains:
- unit/: Unit tests (models, codecs, store, validation, progress)
- integration/: Integration tests (restore, native files, scheduler, service, CLI)
"""
