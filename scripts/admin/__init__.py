"""
Admin Scripts

This module contains operator tools for the closed beta:
- Beta capacity and public-beta flag management
- Waitlist review, approval and export
- Invite code generation, validation and redemption
"""
