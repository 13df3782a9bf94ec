import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

from fastapi import FastAPI, File, Form, Header, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from research_gantt.analysis import analyze_task
from research_gantt.chart import synthesize_chart
from research_gantt.config import AppConfig, settings
from research_gantt.documents import UploadedFile, normalize_upload, validate_uploads
from research_gantt.errors import ExtractionError, ResearchGanttError
from research_gantt.grounding_store import GroundingStore, build_grounding_store, effective_session_id
from research_gantt.layout import compute_layout
from research_gantt.logging import get_logger, log_json, setup_logging
from research_gantt.metrics import metrics
from research_gantt.models import ChartDocument, QuestionRequest, TaskIdentifier
from research_gantt.providers.claude_client import ClaudeClient
from research_gantt.qa import answer_question

logger = get_logger("research_gantt")

MIN_API_KEY_LENGTH = 10


def validate_environment(config: AppConfig) -> None:
    """Fail startup unless the completion credential is present and plausible."""
    key = (config.anthropic.api_key or "").strip()
    if not key:
        raise RuntimeError("Missing required environment variable: ANTHROPIC_API_KEY")
    if len(key) < MIN_API_KEY_LENGTH:
        raise RuntimeError("ANTHROPIC_API_KEY looks invalid (too short)")
    logger.info("Environment variables validated")


def build_client(config: AppConfig) -> ClaudeClient:
    return ClaudeClient(
        api_key=config.anthropic.api_key,
        model=config.anthropic.model,
        request_timeout_ms=config.anthropic.request_timeout_ms,
        max_attempts=config.retry.max_attempts,
        backoff_ms=config.retry.backoff_ms,
        on_usage=metrics.record_usage,
    )


def _error(exc: Exception, prefix: str) -> JSONResponse:
    if isinstance(exc, ExtractionError) or (isinstance(exc, ResearchGanttError) and exc.status_code < 500):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)
    return JSONResponse({"error": f"{prefix}: {exc}"}, status_code=500)


async def _read_uploads(files: list[UploadFile] | None) -> list[UploadedFile]:
    out: list[UploadedFile] = []
    for idx, up in enumerate(files or []):
        try:
            out.append(
                UploadedFile(
                    filename=up.filename or f"upload_{idx}.txt",
                    content_type=up.content_type or "",
                    data=await up.read(),
                )
            )
        finally:
            await up.close()
    return out


def create_app(
    config: AppConfig = settings,
    client: Any | None = None,
    store: GroundingStore | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.logging.level, config.logging.rich_tracebacks)
        validate_environment(config)
        if app.state.client is None:
            app.state.client = build_client(config)
        yield

    app = FastAPI(title="Research Gantt API", lifespan=lifespan)
    app.state.client = client
    app.state.store = store or build_grounding_store(config.grounding)
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        _ = request
        return JSONResponse({"error": f"Invalid request: {exc.errors()}"}, status_code=400)

    def _observe(endpoint: str, started: float, error: bool, **extra: Any) -> None:
        elapsed_ms = (time.time() - started) * 1000
        metrics.record(endpoint=endpoint, total_ms=elapsed_ms, error=error)
        log_json(logger, {"endpoint": endpoint, "latency_ms": round(elapsed_ms, 2), "error": error, **extra})

    @app.get("/")
    def root() -> dict[str, Any]:
        return {
            "service": "Research Gantt API",
            "endpoints": {
                "GET /health": "Health check",
                "GET /metrics": "Request, token and latency metrics",
                "POST /generate-chart": "Upload research files and a prompt; returns chart JSON",
                "POST /get-task-analysis": "Evidence-backed analysis for one task",
                "POST /ask-question": "Grounded follow-up question about one task",
                "POST /chart/layout": "Grid layout and today marker for a chart",
                "DELETE /session": "Forget the research loaded for this session",
            },
        }

    @app.get("/health")
    def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/metrics")
    def get_metrics() -> dict[str, Any]:
        return metrics.stats()

    @app.post("/generate-chart")
    async def generate_chart(
        prompt: str = Form(default=""),
        research_files: list[UploadFile] | None = File(default=None, alias="researchFiles"),
        x_session_id: str | None = Header(default=None),
    ):
        session_id = effective_session_id(x_session_id)
        started = time.time()
        try:
            uploads = await _read_uploads(research_files)
            validate_uploads(uploads)
            context = normalize_upload(uploads)
            app.state.store.replace(session_id, context)
            chart = await synthesize_chart(prompt, context, app.state.client)
        except Exception as exc:
            logger.error("Chart generation failed: %s", exc)
            _observe("/generate-chart", started, True, session_id=session_id)
            return _error(exc, "Error generating chart data")
        _observe("/generate-chart", started, False, session_id=session_id, files=context.filenames)
        return chart.to_wire()

    @app.post("/get-task-analysis")
    async def get_task_analysis(task: TaskIdentifier, x_session_id: str | None = Header(default=None)):
        session_id = effective_session_id(x_session_id)
        started = time.time()
        try:
            result = await analyze_task(
                task,
                app.state.store.get(session_id),
                app.state.client,
                config.analysis.anchor(),
            )
        except Exception as exc:
            logger.error("Task analysis failed: %s", exc)
            _observe("/get-task-analysis", started, True, session_id=session_id)
            return _error(exc, "Error generating task analysis")
        _observe("/get-task-analysis", started, False, session_id=session_id, task=task.task_name)
        return result.to_wire()

    @app.post("/ask-question")
    async def ask_question(req: QuestionRequest, x_session_id: str | None = Header(default=None)):
        session_id = effective_session_id(x_session_id)
        started = time.time()
        try:
            answer = await answer_question(
                req,
                app.state.store.get(session_id),
                app.state.client,
                max_chars=config.analysis.max_question_chars,
            )
        except Exception as exc:
            logger.error("Q&A failed: %s", exc)
            _observe("/ask-question", started, True, session_id=session_id)
            return _error(exc, "Error generating answer")
        _observe("/ask-question", started, False, session_id=session_id, task=req.task_name)
        return {"answer": answer}

    @app.post("/chart/layout")
    def chart_layout(
        doc: ChartDocument,
        today: date | None = Query(default=None),
        label_width: float | None = Query(default=None, alias="labelWidth"),
        grid_width: float | None = Query(default=None, alias="gridWidth"),
    ) -> dict[str, Any]:
        started = time.time()
        layout = compute_layout(doc, today or config.analysis.anchor(), label_width=label_width, grid_width=grid_width)
        _observe("/chart/layout", started, False, rows=len(layout.rows), today=layout.today is not None)
        return layout.to_wire()

    @app.delete("/session")
    def clear_session(x_session_id: str | None = Header(default=None)) -> dict[str, Any]:
        session_id = effective_session_id(x_session_id)
        started = time.time()
        app.state.store.clear(session_id)
        _observe("/session", started, False, session_id=session_id)
        return {"ok": True, "session_id": session_id}

    return app


app = create_app()
