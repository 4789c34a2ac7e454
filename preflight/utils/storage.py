"""
Storage backends used by the preflight worker.

Every backend exposes the same two operations:

- ``fetch(key, destination)`` copies the object at ``key`` into a local,
  job-scoped path and validates its size.
- ``store(key, local_path, content_type)`` writes a derived artifact.

Backends never hand out paths into the backing store itself, so the original
upload can only ever be read.
"""

import logging
import shutil
import unicodedata
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Optional
from urllib.parse import quote

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from ..exceptions import (
    DownloadValidationError,
    StorageNotFound,
    StorageTransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
DOWNLOAD_CHUNK_SIZE = 1024 * 1024
BUNNY_KEY_PREFIX = "bunny:"
BUNNY_STORAGE_HOST = "storage.bunnycdn.com"
S3_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

THUMBNAIL_SUFFIX = "_thumb.webp"
CONVERTED_SUFFIX = "_converted.png"


def derived_key(key: str, suffix: str) -> str:
    """Replace the extension of ``key`` with ``suffix``, keeping any prefix."""
    head, sep, name = key.rpartition("/")
    dot = name.rfind(".")
    stem = name[:dot] if dot > 0 else name
    return f"{head}{sep}{stem}{suffix}"


def validate_download(path: Path, min_bytes: Optional[int] = None) -> int:
    threshold = settings.PREFLIGHT_MIN_FILE_BYTES if min_bytes is None else min_bytes
    try:
        size = path.stat().st_size
    except FileNotFoundError as exc:
        raise DownloadValidationError(f"Downloaded file missing at {path}") from exc
    if size < threshold:
        raise DownloadValidationError(
            f"Downloaded file is too small ({size} bytes, minimum {threshold})"
        )
    return size


class StorageBackend:
    name = "base"

    def fetch(self, key: str, destination: Path) -> Path:
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Fetching %s from %s storage", key, self.name)
        self._download(key, destination)
        validate_download(destination)
        return destination

    def store(self, key: str, local_path: Path, content_type: str) -> None:
        raise NotImplementedError

    def _download(self, key: str, destination: Path) -> None:
        raise NotImplementedError


class LocalStorage(StorageBackend):
    name = "local"

    def __init__(self, base_path) -> None:
        self.base_path = Path(base_path)

    def _segments(self, key: str):
        parts = PurePosixPath(key).parts
        if not parts or PurePosixPath(key).is_absolute() or ".." in parts:
            raise StorageNotFound(f"Invalid local storage key: {key!r}")
        return parts

    def resolve(self, key: str) -> Path:
        """
        Locate ``key`` on disk.

        Filenames written by some clients are decomposed (NFD) while the
        recorded key is composed (NFC), or the other way round. When the exact
        path is missing, each segment is matched against directory entries
        using the composed form of both names.
        """
        parts = self._segments(key)
        exact = self.base_path.joinpath(*parts)
        if exact.exists():
            return exact

        current = self.base_path
        for segment in parts:
            candidate = current / segment
            if candidate.exists():
                current = candidate
                continue
            target = unicodedata.normalize("NFC", segment)
            match = None
            if current.is_dir():
                for entry in current.iterdir():
                    if unicodedata.normalize("NFC", entry.name) == target:
                        match = entry
                        break
            if match is None:
                raise StorageNotFound(f"File not found in local storage: {key}")
            current = match

        logger.info("Resolved %s via Unicode normalization to %s", key, current)
        return current

    def _download(self, key: str, destination: Path) -> None:
        source = self.resolve(key)
        try:
            shutil.copyfile(source, destination)
        except OSError as exc:
            raise StorageTransportError(f"Failed to read {key}: {exc}") from exc

    def store(self, key: str, local_path: Path, content_type: str) -> None:
        target = self.base_path.joinpath(*self._segments(key))
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(local_path, target)
        except OSError as exc:
            raise StorageTransportError(f"Failed to write {key}: {exc}") from exc


class BunnyStorage(StorageBackend):
    name = "bunny"

    def __init__(
        self,
        zone: str,
        api_key: str,
        host: str = BUNNY_STORAGE_HOST,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.zone = zone
        self.api_key = api_key
        self.host = host
        self.timeout = timeout

    def _url(self, key: str) -> str:
        if key.startswith(BUNNY_KEY_PREFIX):
            key = key[len(BUNNY_KEY_PREFIX):]
        return f"https://{self.host}/{self.zone}/{quote(key.lstrip('/'), safe='/')}"

    def _download(self, key: str, destination: Path) -> None:
        url = self._url(key)
        try:
            with requests.get(
                url,
                headers={"AccessKey": self.api_key},
                stream=True,
                timeout=self.timeout,
            ) as response:
                if response.status_code == 404:
                    raise StorageNotFound(f"File not found on Bunny storage: {key}")
                if response.status_code >= 400:
                    raise StorageTransportError(f"HTTP {response.status_code} fetching {key}")
                with destination.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
        except requests.RequestException as exc:
            raise StorageTransportError(f"Bunny download failed for {key}: {exc}") from exc

    def store(self, key: str, local_path: Path, content_type: str) -> None:
        url = self._url(key)
        try:
            with Path(local_path).open("rb") as handle:
                response = requests.put(
                    url,
                    data=handle,
                    headers={"AccessKey": self.api_key, "Content-Type": content_type},
                    timeout=self.timeout,
                )
        except requests.RequestException as exc:
            raise StorageTransportError(f"Bunny upload failed for {key}: {exc}") from exc
        if response.status_code >= 400:
            raise StorageTransportError(f"HTTP {response.status_code} storing {key}: {response.text[:500]}")


class S3Storage(StorageBackend):
    name = "s3"

    def __init__(self, bucket: str, client: Any) -> None:
        self.bucket = bucket
        self.client = client

    def _download(self, key: str, destination: Path) -> None:
        try:
            self.client.download_file(self.bucket, key, str(destination))
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in S3_NOT_FOUND_CODES:
                raise StorageNotFound(f"File not found in bucket {self.bucket}: {key}") from exc
            raise StorageTransportError(f"S3 download failed for {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageTransportError(f"S3 download failed for {key}: {exc}") from exc

    def store(self, key: str, local_path: Path, content_type: str) -> None:
        try:
            self.client.upload_file(
                str(local_path),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageTransportError(f"S3 upload failed for {key}: {exc}") from exc


def _setting(config: Dict[str, Any], key: str, setting_name: str) -> str:
    return config.get(key) or getattr(settings, setting_name, "")


def get_storage_backend(shop) -> StorageBackend:
    """Build the storage backend configured for ``shop``."""
    config = shop.storage_config or {}
    provider = shop.storage_provider

    if provider == "local":
        return LocalStorage(config.get("localPath") or settings.PREFLIGHT_LOCAL_STORAGE_PATH)

    if provider == "bunny":
        return BunnyStorage(
            zone=_setting(config, "bunnyZone", "BUNNY_STORAGE_ZONE"),
            api_key=_setting(config, "bunnyApiKey", "BUNNY_API_KEY"),
            host=_setting(config, "bunnyStorageHost", "BUNNY_STORAGE_HOST") or BUNNY_STORAGE_HOST,
        )

    if provider == "r2":
        account_id = _setting(config, "r2AccountId", "R2_ACCOUNT_ID")
        client = boto3.client(
            "s3",
            region_name="auto",
            endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=_setting(config, "r2AccessKeyId", "R2_ACCESS_KEY_ID"),
            aws_secret_access_key=_setting(config, "r2SecretAccessKey", "R2_SECRET_ACCESS_KEY"),
        )
        backend = S3Storage(_setting(config, "r2BucketName", "R2_BUCKET_NAME"), client)
        backend.name = "r2"
        return backend

    if provider == "s3":
        client = boto3.client(
            "s3",
            region_name=_setting(config, "s3Region", "S3_REGION") or "us-east-1",
            aws_access_key_id=_setting(config, "s3AccessKeyId", "S3_ACCESS_KEY_ID") or None,
            aws_secret_access_key=_setting(config, "s3SecretAccessKey", "S3_SECRET_ACCESS_KEY") or None,
        )
        return S3Storage(_setting(config, "s3BucketName", "S3_BUCKET_NAME"), client)

    raise ValueError(f"Unsupported storage provider: {provider!r}")
