"""
Seeding Scripts

This module contains scripts that load curated data into the catalog:
- Retailer prices for popular equipment
- Sample specs per category
- Equipment imports from JSON files
"""
