"""
Network client tests.

Tests cover:
- JSON-RPC error classification (test_transport.py)
- Revert payload decoding (test_revert.py)
- Queries, gas margin, submission and receipt polling (test_network_client.py)
"""
