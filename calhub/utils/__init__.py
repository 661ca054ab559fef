"""Utility modules for calhub."""
