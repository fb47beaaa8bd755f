"""Tests for the Somnia deployer."""
