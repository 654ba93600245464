"""
OpenBooks Backend — FastAPI Dependencies
========================================

What:  Hand the app-scoped PhotoStore and BlobUploader to route handlers.
How:   Both live on `app.state`, set by create_app(); handlers declare
       `store: PhotoStore = Depends(get_store)`.
"""

from fastapi import Request

from openbooks.services.blob_service import BlobUploader
from openbooks.services.photo_store import PhotoStore


def get_store(request: Request) -> PhotoStore:
    return request.app.state.store


def get_uploader(request: Request) -> BlobUploader:
    return request.app.state.uploader
