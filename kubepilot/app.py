"""FastAPI application: routes, lifespan (AI provider, cluster access, plugins)."""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kubepilot.config import Settings, settings
from kubepilot.diagnostics import DiagnosticEngine
from kubepilot.errors import (
    GenerationFailed,
    KubePilotError,
    PluginAlreadyRegistered,
    PluginNotFound,
    ProviderError,
    ResourceNotFound,
    ResourceQueryError,
    UnknownPlugin,
    UnsupportedProvider,
    UnsupportedResource,
)
from kubepilot.executor import LocalExecutor
from kubepilot.explain import Explainer
from kubepilot.logging_config import log_event, set_correlation_id, setup_logging
from kubepilot.models import (
    DiagnoseRequest,
    ExecuteResponse,
    Explanation,
    ExplainRequest,
    GenerationOptions,
    HealthResponse,
    PlanRequest,
    PlanResponse,
    PluginInfo,
    PluginInstallRequest,
    Report,
    ValidateRequest,
    ValidationResult,
)
from kubepilot.planner import Planner
from kubepilot.plugins import PluginRegistry
from kubepilot.policy import PolicyGate
from kubepilot.providers import new_provider
from kubepilot.resources import KubernetesResourceQuery

# Most specific first; the first matching class decides the status code.
_ERROR_STATUS = [
    (UnsupportedProvider, 400),
    (UnsupportedResource, 400),
    (UnknownPlugin, 400),
    (ResourceNotFound, 404),
    (PluginNotFound, 404),
    (PluginAlreadyRegistered, 409),
    (GenerationFailed, 502),
    (ProviderError, 502),
    (ResourceQueryError, 502),
]


def error_status(exc: KubePilotError) -> int:
    for cls, status in _ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


def create_app(cfg: Settings = settings, provider=None, resources=None, executor=None,
               registry=None, log_dir=None) -> FastAPI:
    """Build the application. Injected components replace the settings-derived ones."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: build every component once from the settings."""
        setup_logging(log_dir or cfg.LOG_DIR)

        app.state.settings = cfg
        app.state.options = GenerationOptions(
            temperature=cfg.AI_TEMPERATURE,
            max_tokens=cfg.AI_MAX_TOKENS,
            model=cfg.AI_MODEL,
        )
        app.state.provider = provider or new_provider(
            cfg.AI_PROVIDER,
            api_key=cfg.AI_API_KEY,
            model=cfg.AI_MODEL,
            base_url=cfg.AI_BASE_URL,
            timeout=cfg.AI_TIMEOUT,
        )
        app.state.resources = resources or KubernetesResourceQuery(context=cfg.KUBE_CONTEXT)
        app.state.executor = executor or LocalExecutor(
            timeout=cfg.COMMAND_TIMEOUT,
            max_output_chars=cfg.MAX_OUTPUT_CHARS,
        )
        app.state.gate = PolicyGate(enabled=cfg.POLICY_ENABLED)

        app.state.registry = registry if registry is not None else PluginRegistry()
        for name in cfg.PLUGINS:
            app.state.registry.install_by_name(name)

        log_event("app_start", {
            "ai_provider": app.state.provider.name(),
            "namespace": cfg.KUBE_NAMESPACE,
            "policy_enabled": cfg.POLICY_ENABLED,
            "plugins": app.state.registry.list_names(),
        })

        yield

        app.state.executor.cleanup()
        log_event("app_shutdown", {})

    app = FastAPI(
        title="kubepilot",
        description="AI-assisted Kubernetes operations: plans, diagnostics and policy checks",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(KubePilotError)
    async def kubepilot_error_handler(request: Request, exc: KubePilotError):
        return JSONResponse(
            status_code=error_status(exc),
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Inject a correlation ID for request-scoped logging."""
        cid = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response

    def _planner(body: PlanRequest) -> Planner:
        state = app.state
        return Planner(
            state.provider,
            namespace=body.namespace or state.settings.KUBE_NAMESPACE,
            dry_run=state.settings.DRY_RUN if body.dry_run is None else body.dry_run,
            options=state.options,
        )

    @app.post("/api/v1/plan", response_model=PlanResponse)
    async def plan(body: PlanRequest):
        """Generate a plan and attach the policy verdict for each command."""
        generated = _planner(body).generate(body.query)
        validations = app.state.gate.review_plan(generated)
        return PlanResponse(
            plan=generated,
            validations=validations,
            executable=all(v.allowed for v in validations),
        )

    @app.post("/api/v1/plan/execute", response_model=ExecuteResponse)
    async def execute(body: PlanRequest):
        """Generate a plan and run it through the policy gate and executor."""
        generated = _planner(body).generate(body.query)
        result = generated.execute(
            app.state.executor,
            gate=app.state.gate,
            approve_unsafe=body.approve_unsafe,
        )
        return ExecuteResponse(plan=generated, result=result)

    @app.post("/api/v1/diagnose", response_model=Report)
    async def diagnose(body: DiagnoseRequest):
        engine = DiagnosticEngine(
            app.state.resources,
            app.state.provider,
            namespace=body.namespace or app.state.settings.KUBE_NAMESPACE,
            registry=app.state.registry,
            options=app.state.options,
        )
        return engine.diagnose(body.resource_kind, body.resource_name)

    @app.post("/api/v1/validate", response_model=ValidationResult)
    async def validate(body: ValidateRequest):
        return app.state.gate.validate(body.command)

    @app.post("/api/v1/explain", response_model=Explanation)
    async def explain(body: ExplainRequest):
        explainer = Explainer(
            app.state.provider,
            app.state.resources,
            namespace=body.namespace or app.state.settings.KUBE_NAMESPACE,
            options=app.state.options,
        )
        return explainer.explain(body.query)

    @app.get("/api/v1/plugins", response_model=list[PluginInfo])
    async def list_plugins():
        return [
            PluginInfo(name=p.name, version=p.version, description=p.description)
            for p in app.state.registry.list_plugins()
        ]

    @app.post("/api/v1/plugins", response_model=PluginInfo, status_code=201)
    async def install_plugin(body: PluginInstallRequest):
        plugin = app.state.registry.install_by_name(body.name)
        return PluginInfo(name=plugin.name, version=plugin.version, description=plugin.description)

    @app.delete("/api/v1/plugins/{name}", status_code=204)
    async def uninstall_plugin(name: str):
        app.state.registry.unregister(name)

    @app.get("/api/v1/health", response_model=HealthResponse)
    async def health():
        """Report provider, namespace and registry status."""
        return HealthResponse(
            status="healthy",
            ai_provider=app.state.provider.name(),
            namespace=app.state.settings.KUBE_NAMESPACE,
            policy_enabled=app.state.gate.enabled,
            plugins=app.state.registry.count(),
        )

    return app


app = create_app()
