"""
OpenBooks Backend — API Routes Package
======================================

Route Inventory:
    - auth.py:    /api/auth/*       active user read / switch / update
    - users.py:   /api/users        list, create, delete
    - posts.py:   /api/posts        feed, upload, like, rate, comment
    - admin.py:   /api/admin/*      reset, status toggle, delete, export
    - health.py:  /health, /api/status

Routes stay thin: they unpack the request and call one PhotoStore operation.
"""
