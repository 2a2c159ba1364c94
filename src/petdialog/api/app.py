"""FastAPI application factory for the pet dialog service.

Endpoints: /health, /config, /backends, /metrics, /generate and the
/sessions/* routes. The DialogRuntime is created lazily on first use (or
injected by the caller) and closed when the application shuts down.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from dialogcore import metrics
from dialogcore.config import get_config
from dialogcore.logging_setup import configure_logging
from dialogcore.runtime import DialogRuntime
from petdialog.api.deps import RuntimeHolder, get_runtime
from petdialog.api.routes.generate import router as generate_router
from petdialog.api.routes.sessions import router as sessions_router


def create_app(runtime: DialogRuntime | None = None) -> FastAPI:
    holder = RuntimeHolder(runtime)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        configure_logging(get_config().logging)
        try:
            yield
        finally:
            holder.close()

    app = FastAPI(
        title="Pet Dialog API",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.runtime_holder = holder

    # Desktop shell talks to the API from a local webview
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health(request: Request):  # noqa: D401
        rt = get_runtime(request)
        return {
            "status": "ok",
            "active_sessions": rt.store.get_active_count(),
        }

    @app.get("/config")
    def config(request: Request):  # noqa: D401
        rt = get_runtime(request)
        return {"dialog": rt.cfg.model_dump()}

    @app.get("/backends")
    def backends(request: Request):  # noqa: D401
        orch = get_runtime(request).orchestrator
        chain = orch.fallback_names
        items = []
        for name in orch.registered():
            items.append(
                {
                    "name": name,
                    "default": name == orch.default_name,
                    "fallback_position": (
                        chain.index(name) if name in chain else None
                    ),
                    "info": orch.backend_info(name).to_dict(),
                }
            )
        return {"backends": items}

    @app.get("/metrics")
    def metrics_snapshot():  # noqa: D401
        return metrics.snapshot()

    app.include_router(generate_router)
    app.include_router(sessions_router)

    @app.middleware("http")
    async def _metrics_mw(request: Request, call_next):  # noqa: D401
        start = time.time()
        labels = {"route": request.url.path, "method": request.method}
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration_ms = (time.time() - start) * 1000.0
            metrics.inc("api_request_total", labels)
            metrics.observe("api_request_latency_ms", duration_ms, labels)
            if status >= 400:
                metrics.inc(
                    "api_request_errors_total", labels | {"status": status}
                )

    return app


app = create_app()


def main() -> None:  # pragma: no cover
    import uvicorn

    uvicorn.run(
        "petdialog.api.app:app", host="127.0.0.1", port=8000, reload=False
    )


if __name__ == "__main__":  # pragma: no cover
    main()
