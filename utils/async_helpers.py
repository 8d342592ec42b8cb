"""
Async Helpers - 동기 진입점에서 파이프라인 코루틴 실행

run_local.py CLI처럼 이벤트 루프가 없는 곳에서 사용합니다.
이미 async 함수 내부라면 await를 직접 사용할 것.

Usage:
    from utils.async_helpers import run_async

    result = run_async(orchestrator.run_pipeline(request))
"""

import asyncio
import logging
from typing import TypeVar, Coroutine, Any

T = TypeVar('T')
logger = logging.getLogger(__name__)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    새 이벤트 루프에서 코루틴을 끝까지 실행

    종료 시 남은 task를 취소하고 루프를 닫습니다 (예외 발생 시에도).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        coro.close()
        raise RuntimeError("run_async() cannot be called from a running event loop; use await")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        _shutdown_loop(loop)


def _shutdown_loop(loop: asyncio.AbstractEventLoop) -> None:
    try:
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            logger.debug(f"[async] Cancelled {len(pending)} pending tasks")
        loop.run_until_complete(loop.shutdown_asyncgens())
    finally:
        asyncio.set_event_loop(None)
        loop.close()


__all__ = ['run_async']
