"""
OpenBooks Backend — Request/Response Schemas
"""
