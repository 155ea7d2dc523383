from content_pipeline.storage.s3 import BlobStore, S3BlobStore, StorageLocation, parse_storage_url

__all__ = ["BlobStore", "S3BlobStore", "StorageLocation", "parse_storage_url"]
