"""
OpenBooks Backend — Middleware Package
======================================

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [Store Ready] → Route Handler

    1. Request ID first, so every later log line and error body carries it
    2. Logging records the final status, including 503s from the ready gate
    3. Store Ready holds or rejects requests until the aggregate is loaded
"""
