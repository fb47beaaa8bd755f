"""
Credential tests.

Tests cover:
- Scheme detection, encryption and decryption (test_schemes.py)
- Import, creation and signing (test_manager.py)
- The project credential file (test_credential_store.py)
"""
