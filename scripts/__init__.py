"""
Teed.club Ops Scripts Package

This package contains the operational scripts for the Teed.club Supabase
project, organized into logical subdirectories:

- database/: Migrations, RLS policy fixers and schema verification
- diagnostics/: Health, system and data quality checks
- collectors/: Equipment image collection and input schemas
- maintenance/: Placeholder cleanup, ranking and badge backfill
- seeding/: Prices, sample specs and catalog imports
- admin/: Beta capacity, waitlist and invite code administration
- smoke/: HTTP smoke tests of the deployed site
"""
