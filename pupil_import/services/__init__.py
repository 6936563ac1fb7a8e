"""Validation passes, correction memory and run services."""
