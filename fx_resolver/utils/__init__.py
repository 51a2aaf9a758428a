"""Shared helpers for :mod:`fx_resolver`."""
