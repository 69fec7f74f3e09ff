"""
Artifact stores for rendered backups.

Supports:
- LocalStorage: Files in a local directory
- S3Storage: Objects in an AWS S3 bucket
- GoogleDriveStorage: Files in a Google Drive folder

Every store is append-only: write() refuses to replace an existing artifact,
and the only removal path is delete(), used by retention.
"""

import io
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .snapshot import format_iso_timestamp

DRIVE_SCOPES = ['https://www.googleapis.com/auth/drive.file']
GOOGLE_TOKEN_URI = 'https://oauth2.googleapis.com/token'

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9]')
_ARTIFACT_NAME = re.compile(
    r'^(?P<series>.+)-(?P<timestamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z)'
    r'\.(?P<extension>[A-Za-z0-9]+)$'
)


class StorageError(Exception):
    """Raised when storage operation fails."""
    pass


@dataclass(frozen=True)
class ArtifactRef:
    """
    A stored artifact.

    location is backend specific: a file path, an S3 key or a Drive file ID.
    """

    name: str
    created_at: datetime
    location: str
    size: Optional[int] = None
    url: Optional[str] = None

    @property
    def extension(self) -> str:
        return self.name.rsplit('.', 1)[-1] if '.' in self.name else ''


def sanitize_name(name: str) -> str:
    """Replace every character outside [A-Za-z0-9] with '_'."""
    return _UNSAFE_CHARS.sub('_', name)


def series_prefix(prefix: str, workspace_name: str) -> str:
    """Name prefix shared by every artifact of one workspace."""
    return f"{prefix}-{sanitize_name(workspace_name)}-"


def artifact_name(prefix: str, workspace_name: str, captured_at: datetime, extension: str) -> str:
    """
    Generate the artifact filename.

    Format: {prefix}-{sanitized workspace}-{ISO timestamp, ':' and '.' -> '-'}.{ext}

    Args:
        prefix: Series prefix, e.g. 'clickup-backup'
        workspace_name: Raw workspace name
        captured_at: Snapshot capture time
        extension: File extension without dot

    Returns:
        Filename (without path)
    """
    timestamp = re.sub(r'[:.]', '-', format_iso_timestamp(captured_at))
    return f"{series_prefix(prefix, workspace_name)}{timestamp}.{extension}"


def parse_artifact_name(name: str) -> Optional[Dict[str, str]]:
    """
    Split an artifact filename into series, timestamp and extension.

    Returns:
        Dict with 'series', 'timestamp' and 'extension', or None if the name
        does not follow the artifact naming scheme
    """
    match = _ARTIFACT_NAME.match(name)
    return match.groupdict() if match else None


def _in_series(name: str, prefix: str) -> bool:
    return name.startswith(prefix) and parse_artifact_name(name) is not None


class LocalStorage:
    """
    Handler for storing artifacts in a local directory.

    Files are written flat into base_path. The file modification time is
    the artifact's creation time.
    """

    def __init__(self, base_path: str):
        """
        Initialize local storage handler.

        Args:
            base_path: Directory for backup artifacts
        """
        self.base_path = Path(base_path)

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create local storage directory: {e}")

    def write(self, name: str, data: bytes, fmt=None) -> ArtifactRef:
        """
        Write an artifact.

        Args:
            name: Artifact filename
            data: Rendered bytes
            fmt: ArtifactFormat (unused by local storage)

        Returns:
            ArtifactRef for the new file

        Raises:
            StorageError: If the file exists or cannot be written
        """
        dest_path = self.base_path / name

        try:
            with open(dest_path, 'xb') as f:
                f.write(data)
            stat = dest_path.stat()
        except FileExistsError:
            raise StorageError(f"Artifact already exists: {dest_path}")
        except PermissionError as e:
            raise StorageError(f"Permission denied writing to {dest_path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to store locally: {e}")

        return ArtifactRef(
            name=name,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            location=str(dest_path),
            size=stat.st_size
        )

    def list(self, prefix: str) -> List[ArtifactRef]:
        """
        List artifacts whose name starts with prefix.

        Raises:
            StorageError: If listing fails
        """
        try:
            refs = []
            for file_path in self.base_path.iterdir():
                if not file_path.is_file() or not _in_series(file_path.name, prefix):
                    continue
                stat = file_path.stat()
                refs.append(ArtifactRef(
                    name=file_path.name,
                    created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    location=str(file_path),
                    size=stat.st_size
                ))
            return refs

        except OSError as e:
            raise StorageError(f"Failed to list local files: {e}")

    def delete(self, ref: ArtifactRef):
        """
        Delete an artifact.

        Raises:
            StorageError: If deletion fails
        """
        full_path = Path(ref.location)

        try:
            full_path.unlink()
        except FileNotFoundError:
            raise StorageError(f"Artifact not found: {full_path}")
        except PermissionError as e:
            raise StorageError(f"Permission denied deleting {full_path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to delete local file: {e}")


class S3Storage:
    """
    Handler for storing artifacts in AWS S3.

    Keys are {key_prefix}{artifact name}. LastModified is the artifact's
    creation time (objects are never overwritten).
    """

    def __init__(
        self,
        bucket_name: str,
        key_prefix: str = '',
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = 'us-east-1'
    ):
        """
        Initialize S3 storage handler.

        Args:
            bucket_name: S3 bucket name
            key_prefix: Key prefix ("folder") inside the bucket
            access_key: AWS access key ID (default credential chain if None)
            secret_key: AWS secret access key
            region: AWS region (default: us-east-1)
        """
        if not bucket_name:
            raise StorageError("S3 bucket name is not configured")

        self.bucket_name = bucket_name
        self.key_prefix = key_prefix
        self.region = region

        try:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region
            )
        except (BotoCoreError, ValueError) as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

    def _key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    def _exists(self, key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise

    def write(self, name: str, data: bytes, fmt=None) -> ArtifactRef:
        """
        Upload an artifact.

        Raises:
            StorageError: If the key exists or the upload fails
        """
        key = self._key(name)
        content_type = getattr(fmt, 'media_type', None) or 'application/octet-stream'

        try:
            if self._exists(key):
                raise StorageError(f"Artifact already exists: s3://{self.bucket_name}/{key}")

            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type
            )
            head = self.s3_client.head_object(Bucket=self.bucket_name, Key=key)

        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise StorageError(f"S3 upload failed ({error_code}): {e}")
        except BotoCoreError as e:
            raise StorageError(f"S3 upload failed: {e}")

        return ArtifactRef(
            name=name,
            created_at=head['LastModified'],
            location=key,
            size=head.get('ContentLength', len(data))
        )

    def list(self, prefix: str) -> List[ArtifactRef]:
        """
        List artifacts whose name starts with prefix.

        Raises:
            StorageError: If listing fails
        """
        try:
            refs = []
            paginator = self.s3_client.get_paginator('list_objects_v2')

            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=self._key(prefix)):
                for obj in page.get('Contents', []):
                    name = obj['Key'][len(self.key_prefix):]
                    if not _in_series(name, prefix):
                        continue
                    refs.append(ArtifactRef(
                        name=name,
                        created_at=obj['LastModified'],
                        location=obj['Key'],
                        size=obj['Size']
                    ))

            return refs

        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise StorageError(f"S3 list failed ({error_code}): {e}")
        except BotoCoreError as e:
            raise StorageError(f"Failed to list S3 objects: {e}")

    def delete(self, ref: ArtifactRef):
        """
        Delete an artifact.

        Raises:
            StorageError: If deletion fails
        """
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=ref.location)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise StorageError(f"S3 delete failed ({error_code}): {e}")
        except BotoCoreError as e:
            raise StorageError(f"Failed to delete from S3: {e}")


class GoogleDriveStorage:
    """
    Handler for storing artifacts in a Google Drive folder.

    Uploads whose format declares a document_mime_type are imported as that
    Google document type. Drive's createdTime is the artifact's creation time.
    """

    def __init__(self, folder_id: str, client_id: str, client_secret: str, refresh_token: str):
        if not folder_id:
            raise StorageError("Google Drive folder ID is not configured")

        self.folder_id = folder_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self._service = None

    def _build_service(self):
        """Build a Drive v3 service from the stored refresh token."""
        from google.oauth2.credentials import Credentials
        from googleapiclient.discovery import build

        creds = Credentials(
            token=None,
            refresh_token=self.refresh_token,
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_uri=GOOGLE_TOKEN_URI,
            scopes=DRIVE_SCOPES,
        )
        return build('drive', 'v3', credentials=creds, cache_discovery=False)

    @property
    def service(self):
        if self._service is None:
            try:
                self._service = self._build_service()
            except Exception as e:
                raise StorageError(f"Failed to initialize Google Drive client: {e}")
        return self._service

    @staticmethod
    def _to_ref(item: Dict[str, Any]) -> ArtifactRef:
        return ArtifactRef(
            name=item['name'],
            created_at=datetime.fromisoformat(item['createdTime'].replace('Z', '+00:00')),
            location=item['id'],
            size=int(item['size']) if item.get('size') else None,
            url=item.get('webViewLink')
        )

    def _find(self, name: str) -> List[Dict[str, Any]]:
        escaped = name.replace('\\', '\\\\').replace("'", "\\'")
        response = self.service.files().list(
            q=f"'{self.folder_id}' in parents and name = '{escaped}' and trashed = false",
            fields='files(id)'
        ).execute()
        return response.get('files', [])

    def write(self, name: str, data: bytes, fmt=None) -> ArtifactRef:
        """
        Upload an artifact into the configured folder.

        Raises:
            StorageError: If a file with that name exists or the upload fails
        """
        from googleapiclient.errors import HttpError
        from googleapiclient.http import MediaIoBaseUpload

        metadata = {'name': name, 'parents': [self.folder_id]}
        document_mime_type = getattr(fmt, 'document_mime_type', None)
        if document_mime_type:
            metadata['mimeType'] = document_mime_type

        media = MediaIoBaseUpload(
            io.BytesIO(data),
            mimetype=getattr(fmt, 'media_type', None) or 'application/octet-stream',
            resumable=False
        )

        try:
            if self._find(name):
                raise StorageError(f"Artifact already exists in Drive folder: {name}")

            item = self.service.files().create(
                body=metadata,
                media_body=media,
                fields='id,name,createdTime,size,webViewLink'
            ).execute()
        except HttpError as e:
            raise StorageError(f"Google Drive upload failed ({e.resp.status}): {e}")

        return self._to_ref(item)

    def list(self, prefix: str) -> List[ArtifactRef]:
        """
        List artifacts whose name starts with prefix, newest first.

        Raises:
            StorageError: If listing fails
        """
        from googleapiclient.errors import HttpError

        escaped = prefix.replace('\\', '\\\\').replace("'", "\\'")
        query = f"'{self.folder_id}' in parents and name contains '{escaped}' and trashed = false"

        refs = []
        page_token = None
        try:
            while True:
                response = self.service.files().list(
                    q=query,
                    orderBy='createdTime desc',
                    fields='nextPageToken, files(id,name,createdTime,size,webViewLink)',
                    pageToken=page_token
                ).execute()

                for item in response.get('files', []):
                    # 'contains' matches word prefixes anywhere in the name
                    if _in_series(item['name'], prefix):
                        refs.append(self._to_ref(item))

                page_token = response.get('nextPageToken')
                if not page_token:
                    break
        except HttpError as e:
            raise StorageError(f"Google Drive list failed ({e.resp.status}): {e}")

        return refs

    def delete(self, ref: ArtifactRef):
        """
        Delete an artifact.

        Raises:
            StorageError: If deletion fails
        """
        from googleapiclient.errors import HttpError

        try:
            self.service.files().delete(fileId=ref.location).execute()
        except HttpError as e:
            raise StorageError(f"Google Drive delete failed ({e.resp.status}): {e}")


def create_storage(config: Dict[str, Any]):
    """
    Factory function to create the configured artifact store.

    Args:
        config: Mapping with STORAGE_BACKEND and the backend's settings

    Returns:
        LocalStorage, S3Storage or GoogleDriveStorage instance

    Raises:
        ValueError: If STORAGE_BACKEND is invalid
    """
    backend = (config.get('STORAGE_BACKEND') or 'local').lower()

    if backend == 'local':
        return LocalStorage(config['LOCAL_BACKUP_DIR'])
    elif backend == 's3':
        return S3Storage(
            bucket_name=config.get('S3_BUCKET'),
            key_prefix=config.get('S3_KEY_PREFIX') or '',
            access_key=config.get('AWS_ACCESS_KEY_ID'),
            secret_key=config.get('AWS_SECRET_ACCESS_KEY'),
            region=config.get('AWS_REGION') or 'us-east-1'
        )
    elif backend == 'gdrive':
        return GoogleDriveStorage(
            folder_id=config.get('GOOGLE_DRIVE_FOLDER_ID'),
            client_id=config.get('GOOGLE_DRIVE_CLIENT_ID'),
            client_secret=config.get('GOOGLE_DRIVE_CLIENT_SECRET'),
            refresh_token=config.get('GOOGLE_DRIVE_REFRESH_TOKEN')
        )
    else:
        raise ValueError(f"Invalid storage backend: {backend}")
