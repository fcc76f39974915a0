"""Reconciliation of used, declared and locked package sets."""
