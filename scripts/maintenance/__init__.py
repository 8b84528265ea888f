"""
Maintenance Scripts

This module contains recurring data maintenance jobs:
- Placeholder image cleanup
- Equipment ranking refresh
- Retroactive badge awards
"""
