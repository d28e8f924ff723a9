"""Operational scripts for Community Stage."""
