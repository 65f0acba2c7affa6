"""FastAPI application entrypoint for ctxscope service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..engine import ContextEngine

T = TypeVar("T")


class ContextRequest(BaseModel):
    files: List[str]
    task: Optional[str] = None


class ScoredFileModel(BaseModel):
    path: str
    score: float


class ContextResponse(BaseModel):
    user_selected: List[str]
    heuristic_seed_files: List[str]
    all_neighbors: List[ScoredFileModel]
    prompt_neighbors: List[str]


class IgnoreRequest(BaseModel):
    path: str
    match_all_by_name: bool = False


class IgnoreResponse(BaseModel):
    added: bool


class ReanalyzeRequest(BaseModel):
    wait: bool = False


class ReanalyzeResponse(BaseModel):
    status: str
    error: Optional[str] = None


class FileListResponse(BaseModel):
    files: List[str]


class PeerModel(BaseModel):
    path: str
    count: int


class PeersResponse(BaseModel):
    path: str
    peers: List[PeerModel]


class HealthResponse(BaseModel):
    status: str
    base_dir: Optional[str] = None


async def _run_blocking(func: Callable[[], T]) -> T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func)


def create_app(engine_factory: Callable[[], ContextEngine]) -> FastAPI:
    """Create the FastAPI application exposing one engine's operations."""

    app = FastAPI(title="ctxscope Service", version="1.0.0")
    app.state.engine = engine_factory()

    async def get_engine(request: Request) -> ContextEngine:
        return request.app.state.engine

    @app.get("/health", response_model=HealthResponse)
    async def health(engine: ContextEngine = Depends(get_engine)) -> HealthResponse:
        base_dir = engine.base_dir
        return HealthResponse(status="ok", base_dir=str(base_dir) if base_dir else None)

    @app.post("/context", response_model=ContextResponse)
    async def context(
        payload: ContextRequest,
        engine: ContextEngine = Depends(get_engine),
    ) -> ContextResponse:
        result = await _run_blocking(
            lambda: engine.calculate_context(payload.files, payload.task)
        )
        return ContextResponse(
            user_selected=result.user_selected,
            heuristic_seed_files=result.heuristic_seed_files,
            all_neighbors=[
                ScoredFileModel(path=item.path, score=item.score)
                for item in result.all_neighbors
            ],
            prompt_neighbors=result.prompt_neighbors,
        )

    @app.post("/ignore", response_model=IgnoreResponse)
    async def ignore(
        payload: IgnoreRequest,
        engine: ContextEngine = Depends(get_engine),
    ) -> IgnoreResponse:
        added = await _run_blocking(
            lambda: engine.add_ignore_pattern(payload.path, payload.match_all_by_name)
        )
        return IgnoreResponse(added=added)

    @app.post("/reanalyze", response_model=ReanalyzeResponse)
    async def reanalyze(
        payload: Optional[ReanalyzeRequest] = None,
        engine: ContextEngine = Depends(get_engine),
    ) -> ReanalyzeResponse:
        future = engine.force_reanalyze()
        if payload is None or not payload.wait:
            return ReanalyzeResponse(status="started")
        result = await asyncio.wrap_future(future)
        if result.ok:
            return ReanalyzeResponse(status="ok")
        return ReanalyzeResponse(status="failed", error=str(result.error))

    @app.get("/hubs", response_model=FileListResponse)
    async def hubs(engine: ContextEngine = Depends(get_engine)) -> FileListResponse:
        return FileListResponse(files=engine.get_hub_files())

    @app.get("/dependents", response_model=FileListResponse)
    async def dependents(
        path: str, engine: ContextEngine = Depends(get_engine)
    ) -> FileListResponse:
        return FileListResponse(files=engine.get_dependents_for_file(path))

    @app.get("/peers", response_model=PeersResponse)
    async def peers(path: str, engine: ContextEngine = Depends(get_engine)) -> PeersResponse:
        return PeersResponse(
            path=path,
            peers=[
                PeerModel(path=peer, count=count)
                for peer, count in engine.get_shared_commit_peers(path)
            ],
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(
        _: Any, exc: FileNotFoundError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    root: Path | str = ".", host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    engine = ContextEngine(root)
    app = create_app(lambda: engine)
    try:
        uvicorn.run(app, host=host, port=port)
    finally:
        engine.close()
