"""
Shared API Layer
================

Middleware, error mapping and response envelopes used by every router.
"""
