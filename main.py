"""
Tailor Worker - FastAPI Entry Point
이력서/커버레터 맞춤 생성 파이프라인 서버
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import Settings, get_settings
from exceptions import ErrorCategory
from orchestrator import PipelineOrchestrator, build_pipeline_orchestrator
from schemas.pipeline_types import PipelineRequest
from services.metrics_service import MetricsCollector
from utils.structured_logger import init_sentry, setup_logging

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# 실패 카테고리 → HTTP 상태 코드
STATUS_BY_CATEGORY: Dict[ErrorCategory, int] = {
    ErrorCategory.GUARDRAIL_VIOLATION: 422,
    ErrorCategory.COLLABORATOR_ERROR: 502,
    ErrorCategory.INFRASTRUCTURE_ERROR: 503,
    ErrorCategory.CANCELLED: 409,
}


class HealthResponse(BaseModel):
    """헬스체크 응답"""
    status: str
    version: str
    env: str
    storage_backend: str
    system: Dict[str, Any]


class CancelResponse(BaseModel):
    cancelled: bool


class ExpireResponse(BaseModel):
    expired: int


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[PipelineOrchestrator] = None,
    metrics: Optional[MetricsCollector] = None,
) -> FastAPI:
    """
    FastAPI 앱 생성

    orchestrator를 주입하지 않으면 시작 시 설정으로 조립하고
    로깅/Sentry도 함께 초기화합니다.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """앱 시작/종료 시 실행"""
        if orchestrator is None:
            setup_logging(settings.LOG_LEVEL, settings.is_production)
            init_sentry(settings.SENTRY_DSN, settings.ENV)
            app.state.metrics = metrics or MetricsCollector()
            app.state.orchestrator = build_pipeline_orchestrator(settings, metrics=app.state.metrics)
        else:
            app.state.metrics = metrics or orchestrator.metrics or MetricsCollector()
            app.state.orchestrator = orchestrator

        logger.info(f"[Main] Tailor Worker starting... (env: {settings.ENV}, storage: {settings.STORAGE_BACKEND.value})")
        yield
        logger.info("[Main] Tailor Worker shutting down...")

    app = FastAPI(
        title="Tailor Worker",
        description="Résumé & cover letter tailoring pipeline",
        version=VERSION,
        lifespan=lifespan,
    )

    # CORS 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # 프로덕션에서는 특정 도메인만 허용
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """헬스체크 엔드포인트"""
        system = request.app.state.metrics.get_system_health()
        return HealthResponse(
            status=system["status"],
            version=VERSION,
            env=settings.ENV,
            storage_backend=settings.STORAGE_BACKEND.value,
            system=system,
        )

    @app.get("/metrics")
    async def get_metrics(request: Request, minutes: int = Query(60, ge=1, le=24 * 60)):
        return request.app.state.metrics.to_dict(minutes)

    @app.post("/pipelines")
    async def run_pipeline(
        request: Request,
        file: UploadFile = File(...),
        job_url: str = Form(...),
        company_name: Optional[str] = Form(None),
    ):
        """
        파이프라인 실행 엔드포인트

        실패도 결과 본문을 그대로 반환하고 상태 코드만 카테고리에 맞춥니다.
        """
        pipeline_request = PipelineRequest(
            resume_bytes=await file.read(),
            resume_filename=file.filename or "unknown",
            resume_mime_type=file.content_type or "application/octet-stream",
            job_url=job_url,
            company_name=company_name or None,
        )
        logger.info(f"[Main] Pipeline requested: {pipeline_request.resume_filename} → {job_url}")

        result = await request.app.state.orchestrator.run_pipeline(pipeline_request)

        status_code = 200
        if not result.success:
            status_code = STATUS_BY_CATEGORY.get(result.error_category, 500)
        return JSONResponse(status_code=status_code, content=result.to_dict())

    @app.get("/sessions/{token}")
    async def get_session(request: Request, token: str):
        view = await request.app.state.orchestrator.get_status(token)
        if view is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return view.to_dict()

    @app.post("/sessions/{token}/cancel", response_model=CancelResponse)
    async def cancel_session(request: Request, token: str):
        cancelled = await request.app.state.orchestrator.cancel(token)
        return CancelResponse(cancelled=cancelled)

    @app.post("/maintenance/expire-sessions", response_model=ExpireResponse)
    async def expire_sessions(request: Request):
        expired = await request.app.state.orchestrator.expire_sessions()
        return ExpireResponse(expired=expired)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().DEBUG
    )
