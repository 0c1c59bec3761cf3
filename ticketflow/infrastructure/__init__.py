"""
Infrastructure Layer
=====================

Framework-level plumbing shared by every bounded context:
- Database engine and session lifecycle
"""
