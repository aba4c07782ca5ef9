from .auth_api import AuthAPI
from .backend import BackendClient, Query
from .image_processor import ImageProcessor
from .storage import StorageManager, extract_storage_path


__all__ = [
    # auth_api.py
    "AuthAPI",
    # backend.py
    "BackendClient",
    "Query",
    # image_processor.py
    "ImageProcessor",
    # storage.py
    "StorageManager",
    "extract_storage_path",
]
