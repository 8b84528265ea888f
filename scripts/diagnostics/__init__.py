"""
Diagnostic Scripts

This module contains read-mostly checks against the live project:
- Master health check (connection, waitlist, admins, capacity, RLS, functions)
- Feature-area table checks
- Equipment catalog data quality report
"""
