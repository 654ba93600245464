"""
OpenBooks Backend — Services Layer
==================================

Service Inventory:
    - PhotoStore: owns the in-memory aggregate; every read and mutation
    - summarize_post: per-viewer post projection
    - build_seed_aggregate: initial / reset state
    - BlobUploader (abstract), LocalDiskUploader, AzureBlobUploader:
      image storage for uploads
"""
