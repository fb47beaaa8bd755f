"""
Deployment pipeline tests.

Tests cover:
- Constructor argument defaults (test_arguments.py)
- Argument coercion and encoding (test_encoding.py)
- Simulation outcomes (test_simulator.py)
- Deployment records (test_records.py)
- The end-to-end orchestrator (test_orchestrator.py)
"""
