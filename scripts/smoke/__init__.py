"""
Smoke Tests

This module contains HTTP-level checks against the deployed site.
"""
