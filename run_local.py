"""
Local development runner for Tailor Worker
Loads .env or .env.local, then starts uvicorn or runs one pipeline from local files

Usage:
    python run_local.py serve --port 8000
    python run_local.py run --resume ./resume.pdf --job-url https://boards.greenhouse.io/acme/jobs/1
"""
import argparse
import json
import logging
import mimetypes
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from utils.async_helpers import run_async

project_root = Path(__file__).parent

# (이름, 필수 여부)
REQUIRED_VARS = [
    ('OPENAI_API_KEY', True),
    ('SUPABASE_URL', False),          # STORAGE_BACKEND=supabase일 때만 필요
    ('SUPABASE_SERVICE_KEY', False),
    ('SENTRY_DSN', False),
]

MIME_BY_SUFFIX = {
    '.pdf': 'application/pdf',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    '.doc': 'application/msword',
}


def load_env() -> None:
    """.env.local 또는 .env 로드 (우선순위: .env.local > .env)"""
    env_local = project_root / '.env.local'
    env_file = project_root / '.env'

    if env_local.exists():
        load_dotenv(env_local, override=True)
        print(f"Loaded env from: {env_local}")
    elif env_file.exists():
        load_dotenv(env_file, override=True)
        print(f"Loaded env from: {env_file}")
    else:
        print(f"WARNING: No .env file found in {project_root}")


def check_env() -> bool:
    print("\n=== Worker Environment Check ===")
    missing_required = []
    for var, required in REQUIRED_VARS:
        value = os.getenv(var)
        status = 'SET' if value else 'NOT SET'
        marker = '✓' if value else ('✗' if required else '○')
        print(f"  {marker} {var}: {status}")
        if required and not value:
            missing_required.append(var)

    if missing_required:
        print(f"\n⚠️  Missing required env vars: {', '.join(missing_required)}")
        print("   Please check your .env or .env.local file")
    else:
        print("\n✓ All required env vars are set!")
    print("================================\n")
    return not missing_required


def guess_mime_type(path: Path) -> str:
    return MIME_BY_SUFFIX.get(path.suffix.lower()) or mimetypes.guess_type(path.name)[0] or 'application/octet-stream'


async def _run_and_collect(orchestrator, request, blob_store):
    """실행 결과와 (blob store가 있으면) 생성 문서 바이트 반환"""
    result = await orchestrator.run_pipeline(request)
    files = []
    if result.success and blob_store is not None:
        for document in result.documents:
            files.append((document.file_name, await blob_store.download(document.blob_reference)))
    return result, files


def run_once(resume_path: Path, job_url: str, company_name: str = None, output_dir: Path = None) -> int:
    """파이프라인 1회 실행 후 결과 출력 (성공 시 0)"""
    from config import get_settings
    from orchestrator import build_pipeline_orchestrator
    from schemas.pipeline_types import PipelineRequest
    from services.blob_store import InMemoryBlobStore
    from services.metrics_service import MetricsCollector
    from utils.structured_logger import setup_logging

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.is_production)

    blob_store = InMemoryBlobStore() if output_dir else None
    orchestrator = build_pipeline_orchestrator(
        settings, blob_store=blob_store, metrics=MetricsCollector()
    )
    request = PipelineRequest(
        resume_bytes=resume_path.read_bytes(),
        resume_filename=resume_path.name,
        resume_mime_type=guess_mime_type(resume_path),
        job_url=job_url,
        company_name=company_name,
    )

    result, files = run_async(_run_and_collect(orchestrator, request, blob_store))
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))

    if files:
        output_dir.mkdir(parents=True, exist_ok=True)
        for file_name, data in files:
            target = output_dir / file_name
            target.write_bytes(data)
            print(f"Saved: {target}")

    return 0 if result.success else 1


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Tailor Worker local runner")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="start the API server")
    serve.add_argument("--port", type=int, default=int(os.environ.get("PORT", 8000)))

    run = sub.add_parser("run", help="run one pipeline from a local résumé file")
    run.add_argument("--resume", type=Path, required=True)
    run.add_argument("--job-url", required=True)
    run.add_argument("--company")
    run.add_argument("--output-dir", type=Path, help="write generated documents here (uses in-memory blob store)")

    args = parser.parse_args(argv)

    load_env()
    check_env()

    if args.command == "serve":
        import uvicorn
        uvicorn.run("main:app", host="0.0.0.0", port=args.port, reload=True)
        return 0

    if not args.resume.exists():
        logging.getLogger(__name__).error(f"[run_local] Résumé not found: {args.resume}")
        return 2
    return run_once(args.resume, args.job_url, args.company, args.output_dir)


if __name__ == "__main__":
    sys.exit(main())
