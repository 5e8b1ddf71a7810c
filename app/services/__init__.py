"""
Services package - Business Logic Layer

Contains all business logic separated from HTTP/API concerns.
"""
from app.services.file_service import FileService, RawObject, RawObjectNotFound

__all__ = ["FileService", "RawObject", "RawObjectNotFound"]
