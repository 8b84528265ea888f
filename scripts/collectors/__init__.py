"""
Data Collection Scripts

This module contains scripts for collecting equipment data from external sources:
- Product images: re-hosting, search-based discovery and scraped JSON imports
- Pydantic schemas validating equipment, price and waitlist rows
"""
