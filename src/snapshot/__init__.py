"""Automatic renv snapshots and lockfile timestamp handling."""
