"""Synthetic bytecode image builders shared by the test-suite."""
