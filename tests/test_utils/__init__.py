"""
Utility tests.

Tests cover:
- Retry with exponential backoff (test_retry.py)
- Path and name validation (test_security.py)
- Atomic JSON files and structured logging (test_files_logging.py)
"""
