"""
Database Management Scripts

This module contains utilities for database operations:
- Supabase client construction and error classification
- SQL migrations with direct, RPC and manual execution paths
- Row-level security policy catalog and fixers
- Schema verification
"""
