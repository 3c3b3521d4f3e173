"""
Blob storage for published artifacts.

GCSStorage publishes to a Google Cloud Storage bucket; LocalStorage copies
files under the media directory, which the API serves at /media.
"""

import os
import shutil
import logging
from datetime import datetime, timedelta, timezone

import requests
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from config import (
    STORAGE_BACKEND,
    GCS_BUCKET,
    GCS_PROJECT,
    GCS_KEY_FILE,
    PUBLISHED_DIR,
    PUBLIC_BASE_URL,
)
from exceptions import ConfigurationError, UploadFailure


class BlobStorage:
    def upload(self, local_path: str, dest_key: str, make_public: bool = True) -> str:
        raise NotImplementedError

    def delete(self, dest_key: str) -> None:
        raise NotImplementedError

    def cleanup(self, prefix: str, max_age_days: int = 30) -> int:
        raise NotImplementedError


class GCSStorage(BlobStorage):
    def __init__(self, bucket_name: str = GCS_BUCKET, client=None):
        if not bucket_name:
            raise ConfigurationError("GCS_BUCKET is not set in environment variables")
        if client is None:
            if os.path.exists(GCS_KEY_FILE):
                client = storage.Client.from_service_account_json(GCS_KEY_FILE, project=GCS_PROJECT)
            else:
                client = storage.Client(project=GCS_PROJECT)
        self.client = client
        self.bucket_name = bucket_name
        self.bucket = client.bucket(bucket_name)

    def upload(self, local_path: str, dest_key: str, make_public: bool = True) -> str:
        logging.info(f"[GCS] Uploading {local_path} to gs://{self.bucket_name}/{dest_key}")
        blob = self.bucket.blob(dest_key)
        blob.cache_control = "public, max-age=31536000"
        try:
            blob.upload_from_filename(local_path, predefined_acl="publicRead" if make_public else "private")
        except (GoogleAPIError, GoogleAuthError, requests.RequestException, OSError) as e:
            logging.error(f"[GCS] Upload error: {e}")
            raise UploadFailure(f"Failed to upload to GCS: {e}") from e

        public_url = f"https://storage.googleapis.com/{self.bucket_name}/{dest_key}"
        logging.info(f"[GCS] Upload successful: {public_url}")
        return public_url

    def delete(self, dest_key: str) -> None:
        try:
            self.bucket.blob(dest_key).delete()
            logging.info(f"[GCS] Deleted: gs://{self.bucket_name}/{dest_key}")
        except GoogleAPIError as e:
            logging.error(f"[GCS] Delete error for {dest_key}: {e}")

    def cleanup(self, prefix: str, max_age_days: int = 30) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=max_age_days)
        deleted = 0
        try:
            for blob in self.client.list_blobs(self.bucket_name, prefix=prefix):
                if blob.time_created is None or blob.time_created >= cutoff:
                    continue
                try:
                    blob.delete()
                    deleted += 1
                    logging.info(f"[GCS] Deleted old file: {blob.name}")
                except GoogleAPIError as e:
                    logging.error(f"[GCS] Could not delete {blob.name}: {e}")
        except GoogleAPIError as e:
            logging.error(f"[GCS] Cleanup error: {e}")

        logging.info(f"[GCS] Cleanup complete: {deleted} files deleted from {prefix}")
        return deleted


class LocalStorage(BlobStorage):
    """`base_url` is the public URL under which `root` is served."""

    def __init__(self, root: str = PUBLISHED_DIR, base_url: str = f"{PUBLIC_BASE_URL}/media/published"):
        self.root = root
        self.base_url = base_url.rstrip("/")

    def _path(self, dest_key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, dest_key))
        if not path.startswith(os.path.abspath(self.root) + os.sep):
            raise UploadFailure(f"Refusing to publish outside the storage root: {dest_key}")
        return path

    def upload(self, local_path: str, dest_key: str, make_public: bool = True) -> str:
        target = self._path(dest_key)
        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            shutil.copyfile(local_path, target)
        except OSError as e:
            raise UploadFailure(f"Failed to publish {local_path}: {e}") from e
        url = f"{self.base_url}/{dest_key.lstrip('/')}"
        logging.info(f"[Local] Published {local_path} at {url}")
        return url

    def delete(self, dest_key: str) -> None:
        try:
            os.remove(self._path(dest_key))
        except (OSError, UploadFailure) as e:
            logging.error(f"[Local] Delete error for {dest_key}: {e}")

    def cleanup(self, prefix: str, max_age_days: int = 30) -> int:
        cutoff = datetime.now(timezone.utc).timestamp() - max_age_days * 86400
        deleted = 0
        for root, _, files in os.walk(os.path.join(self.root, prefix)):
            for name in files:
                path = os.path.join(root, name)
                try:
                    if os.path.getmtime(path) < cutoff:
                        os.remove(path)
                        deleted += 1
                except OSError as e:
                    logging.error(f"[Local] Could not delete {path}: {e}")
        logging.info(f"[Local] Cleanup complete: {deleted} files deleted from {prefix}")
        return deleted


def make_storage(backend: str = STORAGE_BACKEND) -> BlobStorage:
    if backend == "gcs":
        try:
            return GCSStorage()
        except GoogleAuthError as e:
            raise ConfigurationError(f"Google Cloud credentials are not configured: {e}") from e
    if backend == "local":
        return LocalStorage()
    raise ConfigurationError(f"Unknown STORAGE_BACKEND '{backend}'")
