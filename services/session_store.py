"""
Session Store - 파이프라인 세션 저장소

- InMemorySessionStore: lock으로 쓰기를 직렬화하고 조회 시 deep copy 스냅샷 반환
- SupabaseSessionStore: tailoring_sessions 테이블

공통 규칙:
- 상태 전이는 ALLOWED_TRANSITIONS에 있는 전진 방향만 허용 (거부 시 False)
- processing_log는 append-only
- completed_at은 Completed 전이 시 한 번만 설정
- 저장소 접근 실패는 InfrastructureError
"""

import copy
import uuid
import secrets
import asyncio
import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional

from supabase import Client, create_client

from exceptions import InfrastructureError
from schemas.enums import SessionStatus, ALLOWED_TRANSITIONS, TERMINAL_STATUSES, can_transition
from schemas.pipeline_types import Session, GeneratedDocument, ensure_utc, utc_now
from .interfaces import SessionStore

logger = logging.getLogger(__name__)


EXPIRED_LOG_ENTRY = "Session expired"


def new_session_token() -> str:
    return secrets.token_urlsafe(24)


def source_statuses(target: SessionStatus) -> List[SessionStatus]:
    """target으로 전이 가능한 현재 상태 목록"""
    return [s for s, targets in ALLOWED_TRANSITIONS.items() if target in targets]


class InMemorySessionStore(SessionStore):
    """
    인메모리 세션 저장소

    세션 필드는 드라이빙 오케스트레이터만 변경하지만,
    조회(get_status)는 동시에 들어올 수 있으므로 모든 접근을 lock으로 보호합니다.
    """

    def __init__(self, ttl_hours: int = 24):
        self.ttl = timedelta(hours=ttl_hours)
        self._sessions: Dict[str, Session] = {}
        self._token_index: Dict[str, str] = {}
        self._lock = threading.Lock()

    async def create(self, candidate_ref: str, job_ref: str) -> Session:
        now = utc_now()
        session = Session(
            id=str(uuid.uuid4()),
            token=new_session_token(),
            candidate_ref=candidate_ref,
            job_ref=job_ref,
            created_at=now,
            expires_at=now + self.ttl,
        )
        with self._lock:
            self._sessions[session.id] = session
            self._token_index[session.token] = session.id
            snapshot = copy.deepcopy(session)

        logger.info(f"[InMemorySessionStore] Session created: {session.id}")
        return snapshot

    async def find(self, token: str) -> Optional[Session]:
        with self._lock:
            session_id = self._token_index.get(token)
            if session_id is None:
                return None
            return copy.deepcopy(self._sessions[session_id])

    async def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            return copy.deepcopy(session) if session else None

    async def update_status(
        self,
        session_id: str,
        status: SessionStatus,
        log_entry: Optional[str] = None,
    ) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                logger.warning(f"[InMemorySessionStore] Unknown session: {session_id}")
                return False
            if not can_transition(session.status, status):
                logger.warning(
                    f"[InMemorySessionStore] Rejected transition {session.status.value} → "
                    f"{status.value} (session={session_id})"
                )
                return False

            session.status = status
            if status is SessionStatus.COMPLETED and session.completed_at is None:
                session.completed_at = utc_now()
            if log_entry:
                session.processing_log.append(log_entry)
        return True

    async def append_log(self, session_id: str, log_entry: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.processing_log.append(log_entry)
        return True

    async def mark_completed(self, session_id: str, log_entry: Optional[str] = None) -> bool:
        return await self.update_status(session_id, SessionStatus.COMPLETED, log_entry)

    async def attach_documents(self, session_id: str, documents: List[GeneratedDocument]) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.status in TERMINAL_STATUSES:
                return False
            session.documents.extend(copy.deepcopy(list(documents)))
        return True

    async def expire_sessions(self, now: Optional[datetime] = None) -> int:
        now = ensure_utc(now) if now else utc_now()
        expired = 0
        with self._lock:
            for session in self._sessions.values():
                if session.status in TERMINAL_STATUSES or session.expires_at > now:
                    continue
                session.status = SessionStatus.EXPIRED
                session.processing_log.append(EXPIRED_LOG_ENTRY)
                expired += 1

        if expired:
            logger.info(f"[InMemorySessionStore] Expired {expired} sessions")
        return expired


class SupabaseSessionStore(SessionStore):
    """
    Supabase 테이블 세션 저장소

    상태 전이는 현재 상태 조건부 update로 수행하므로
    역방향 전이는 0 rows → False가 됩니다.
    """

    def __init__(self, client: Client, table: str = "tailoring_sessions", ttl_hours: int = 24):
        self.client = client
        self.table = table
        self.ttl = timedelta(hours=ttl_hours)

    @classmethod
    def from_credentials(
        cls,
        url: str,
        service_key: str,
        table: str = "tailoring_sessions",
        ttl_hours: int = 24,
    ) -> "SupabaseSessionStore":
        if not url or not service_key:
            raise InfrastructureError("SUPABASE_URL and SUPABASE_SERVICE_KEY required")
        client = create_client(url, service_key)
        logger.info(f"[SupabaseSessionStore] Supabase client initialized (table: {table})")
        return cls(client, table, ttl_hours)

    async def _execute(self, operation: str, build_query) -> List[Dict[str, Any]]:
        """동기 쿼리를 스레드에서 실행, 실패 시 InfrastructureError"""
        try:
            result = await asyncio.to_thread(lambda: build_query().execute())
        except Exception as e:
            logger.error(f"[SupabaseSessionStore] {operation} failed: {e}")
            raise InfrastructureError(
                f"Session store {operation} failed: {e}",
                details={"table": self.table, "operation": operation},
            ) from e
        return result.data or []

    async def create(self, candidate_ref: str, job_ref: str) -> Session:
        now = utc_now()
        session = Session(
            id=str(uuid.uuid4()),
            token=new_session_token(),
            candidate_ref=candidate_ref,
            job_ref=job_ref,
            created_at=now,
            expires_at=now + self.ttl,
        )
        await self._execute("create", lambda: self.client.table(self.table).insert(session.to_dict()))
        logger.info(f"[SupabaseSessionStore] Session created: {session.id}")
        return session

    async def find(self, token: str) -> Optional[Session]:
        rows = await self._execute(
            "find",
            lambda: self.client.table(self.table).select("*").eq("token", token).limit(1),
        )
        return Session.from_dict(rows[0]) if rows else None

    async def _get_row(self, session_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._execute(
            "get",
            lambda: self.client.table(self.table).select("*").eq("id", session_id).limit(1),
        )
        return rows[0] if rows else None

    async def update_status(
        self,
        session_id: str,
        status: SessionStatus,
        log_entry: Optional[str] = None,
    ) -> bool:
        row = await self._get_row(session_id)
        if row is None:
            return False
        current = SessionStatus(row["status"])
        if not can_transition(current, status):
            logger.warning(
                f"[SupabaseSessionStore] Rejected transition {current.value} → {status.value} "
                f"(session={session_id})"
            )
            return False

        update: Dict[str, Any] = {"status": status.value}
        if log_entry:
            update["processing_log"] = list(row.get("processing_log") or []) + [log_entry]
        if status is SessionStatus.COMPLETED and not row.get("completed_at"):
            update["completed_at"] = utc_now().isoformat()

        rows = await self._execute(
            "update_status",
            lambda: self.client.table(self.table)
            .update(update)
            .eq("id", session_id)
            .in_("status", [s.value for s in source_statuses(status)]),
        )
        return bool(rows)

    async def append_log(self, session_id: str, log_entry: str) -> bool:
        row = await self._get_row(session_id)
        if row is None:
            return False
        log = list(row.get("processing_log") or []) + [log_entry]
        rows = await self._execute(
            "append_log",
            lambda: self.client.table(self.table).update({"processing_log": log}).eq("id", session_id),
        )
        return bool(rows)

    async def mark_completed(self, session_id: str, log_entry: Optional[str] = None) -> bool:
        return await self.update_status(session_id, SessionStatus.COMPLETED, log_entry)

    async def attach_documents(self, session_id: str, documents: List[GeneratedDocument]) -> bool:
        row = await self._get_row(session_id)
        if row is None or SessionStatus(row["status"]) in TERMINAL_STATUSES:
            return False
        merged = list(row.get("documents") or []) + [d.to_dict() for d in documents]
        rows = await self._execute(
            "attach_documents",
            lambda: self.client.table(self.table).update({"documents": merged}).eq("id", session_id),
        )
        return bool(rows)

    async def expire_sessions(self, now: Optional[datetime] = None) -> int:
        now = ensure_utc(now) if now else utc_now()
        rows = await self._execute(
            "expire_sessions",
            lambda: self.client.table(self.table)
            .select("id")
            .in_("status", [s.value for s in source_statuses(SessionStatus.EXPIRED)])
            .lte("expires_at", now.isoformat()),
        )
        expired = 0
        for row in rows:
            if await self.update_status(row["id"], SessionStatus.EXPIRED, EXPIRED_LOG_ENTRY):
                expired += 1
        if expired:
            logger.info(f"[SupabaseSessionStore] Expired {expired} sessions")
        return expired
