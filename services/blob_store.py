"""
Blob Store - 생성 문서 저장소

- InMemoryBlobStore: 인스턴스 단위 dict 저장 (개발/테스트)
- SupabaseBlobStore: Supabase Storage 버킷

저장소 접근 실패는 StorageError(InfrastructureError)로 전달됩니다.
"""

import uuid
import asyncio
import logging
import threading
from typing import Dict, Optional, Tuple

from supabase import Client, create_client

from exceptions import StorageError
from .interfaces import BlobStore

logger = logging.getLogger(__name__)


def _object_path(name: str) -> str:
    """이름 충돌 방지용 prefix"""
    return f"{uuid.uuid4().hex}/{name}"


class InMemoryBlobStore(BlobStore):
    """프로세스 메모리 저장소 (인스턴스 간 공유 없음)"""

    SCHEME = "memory://"

    def __init__(self):
        self._blobs: Dict[str, Tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    async def upload(self, data: bytes, name: str, content_type: str) -> str:
        reference = f"{self.SCHEME}{_object_path(name)}"
        with self._lock:
            self._blobs[reference] = (bytes(data), content_type)
        logger.debug(f"[InMemoryBlobStore] Stored {reference} ({len(data)} bytes)")
        return reference

    async def download(self, reference: str) -> bytes:
        with self._lock:
            entry = self._blobs.get(reference)
        if entry is None:
            raise StorageError(f"Blob not found: {reference}", details={"reference": reference})
        return entry[0]

    async def delete(self, reference: str) -> bool:
        with self._lock:
            return self._blobs.pop(reference, None) is not None

    def content_type_of(self, reference: str) -> Optional[str]:
        with self._lock:
            entry = self._blobs.get(reference)
        return entry[1] if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


class SupabaseBlobStore(BlobStore):
    """
    Supabase Storage 저장소

    blob reference는 버킷 내 object path입니다.
    supabase 클라이언트는 동기이므로 스레드에서 호출합니다.
    """

    def __init__(self, client: Client, bucket: str = "generated-documents"):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_credentials(cls, url: str, service_key: str, bucket: str) -> "SupabaseBlobStore":
        if not url or not service_key:
            raise StorageError("SUPABASE_URL and SUPABASE_SERVICE_KEY required")
        client = create_client(url, service_key)
        logger.info(f"[SupabaseBlobStore] Supabase client initialized (bucket: {bucket})")
        return cls(client, bucket)

    async def upload(self, data: bytes, name: str, content_type: str) -> str:
        path = _object_path(name)
        try:
            await asyncio.to_thread(
                self.client.storage.from_(self.bucket).upload,
                path,
                data,
                {"content-type": content_type},
            )
        except Exception as e:
            logger.error(f"[SupabaseBlobStore] Upload failed for {name}: {e}")
            raise StorageError(
                f"Upload failed: {e}",
                details={"bucket": self.bucket, "name": name},
            ) from e

        logger.info(f"[SupabaseBlobStore] Uploaded {path} ({len(data)} bytes)")
        return path

    async def download(self, reference: str) -> bytes:
        try:
            return await asyncio.to_thread(self.client.storage.from_(self.bucket).download, reference)
        except Exception as e:
            logger.error(f"[SupabaseBlobStore] Download failed for {reference}: {e}")
            raise StorageError(
                f"Download failed: {e}",
                details={"bucket": self.bucket, "reference": reference},
            ) from e

    async def delete(self, reference: str) -> bool:
        try:
            removed = await asyncio.to_thread(self.client.storage.from_(self.bucket).remove, [reference])
        except Exception as e:
            logger.error(f"[SupabaseBlobStore] Delete failed for {reference}: {e}")
            raise StorageError(
                f"Delete failed: {e}",
                details={"bucket": self.bucket, "reference": reference},
            ) from e
        return bool(removed)
