"""FastAPI app entrypoint for evalmate."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from evalmate.api.auth import AuthProvider, SupabaseAuthProvider, current_user_id
from evalmate.api.schemas import (
    CreateOrderRequest,
    CreateTaskRequest,
    EvaluationAccepted,
    OrderResponse,
    UpdateProfileRequest,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    task_view,
)
from evalmate.config.log_setup import configure_logging
from evalmate.config.settings import Settings, get_settings
from evalmate.errors import (
    EvalmateError,
    PayloadTooLargeError,
    PaymentGatewayError,
    TaskNotFoundError,
)
from evalmate.evaluation.service import EvaluationService
from evalmate.llm.fallback import ModelFallbackCaller
from evalmate.llm.gateway import HTTPInferenceGateway, InferenceGateway
from evalmate.payments.gateway import HTTPPaymentGateway, PaymentGateway
from evalmate.payments.service import PaymentService
from evalmate.storage.base import EvaluationStore
from evalmate.storage.models import PaymentRecord, TaskRecord, UserProfile
from evalmate.storage.postgres import PostgresEvaluationStore

WEBHOOK_SIGNATURE_HEADER = "X-Razorpay-Signature"


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: EvaluationStore | None,
    inference_override: InferenceGateway | None,
    payment_override: PaymentGateway | None,
    auth_override: AuthProvider | None,
) -> None:
    if not hasattr(app.state, "storage"):
        database_url = settings.resolved_database_url()
        if storage_override is None and not database_url:
            raise RuntimeError(
                "Missing database URL. Set EVALMATE_DATABASE_URL "
                "or DATABASE_URL before starting the app."
            )
        app.state.storage = storage_override or PostgresEvaluationStore(database_url)
        app.state.storage.migrate()

    if not hasattr(app.state, "settings"):
        app.state.settings = settings

    if not hasattr(app.state, "auth_provider"):
        app.state.auth_provider = auth_override or SupabaseAuthProvider(
            auth_url=settings.resolved_auth_url(),
            api_key=settings.resolved_auth_api_key(),
            timeout_s=settings.auth_timeout_s,
        )

    if not hasattr(app.state, "evaluations"):
        gateway = inference_override or HTTPInferenceGateway(
            api_key=settings.resolved_llm_api_key(),
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
        )
        caller = ModelFallbackCaller(
            gateway,
            preferred_models=settings.llm_preferred_models,
            preferred_families=settings.llm_preferred_families,
            excluded_markers=settings.llm_excluded_model_markers,
            temperature=settings.llm_temperature,
        )
        app.state.evaluations = EvaluationService(
            app.state.storage, caller=caller, settings=settings
        )

    if not hasattr(app.state, "payments"):
        payment_gateway = payment_override
        if payment_gateway is None and settings.resolved_payment_key_id():
            payment_gateway = HTTPPaymentGateway(
                key_id=settings.resolved_payment_key_id(),
                key_secret=settings.resolved_payment_key_secret(),
                base_url=settings.payment_base_url,
                timeout_s=settings.payment_timeout_s,
            )
        app.state.payments = (
            PaymentService(
                app.state.storage,
                payment_gateway,
                key_secret=settings.resolved_payment_key_secret(),
                webhook_secret=settings.resolved_payment_webhook_secret(),
                currency=settings.payment_currency,
                report_price=settings.report_price,
            )
            if payment_gateway is not None
            else None
        )


def create_app(
    *,
    storage: EvaluationStore | None = None,
    settings_override: Settings | None = None,
    inference_gateway: InferenceGateway | None = None,
    payment_gateway: PaymentGateway | None = None,
    auth_provider: AuthProvider | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    configure_logging(settings.log_level)

    def _init(app: FastAPI) -> None:
        _ensure_runtime_state(
            app,
            settings=settings,
            storage_override=storage,
            inference_override=inference_gateway,
            payment_override=payment_gateway,
            auth_override=auth_provider,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _init(app)
        yield

    app_lifespan = lifespan if storage is None else None
    app = FastAPI(title=settings.app_name, lifespan=app_lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if storage is not None:
        _init(app)

    @app.exception_handler(EvalmateError)
    async def _evalmate_error(_: Request, exc: EvalmateError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    def _storage(request: Request) -> EvaluationStore:
        if not hasattr(request.app.state, "storage"):
            _init(request.app)
        return request.app.state.storage

    def _payments(request: Request) -> PaymentService:
        _storage(request)
        service: PaymentService | None = request.app.state.payments
        if service is None:
            raise PaymentGatewayError("Payment gateway is not configured")
        return service

    def _has_premium_access(store: EvaluationStore, record: TaskRecord, user_id: str) -> bool:
        return record.report_unlocked or store.get_or_create_profile(user_id).premium_user

    @app.get("/health")
    @app.get("/healthz")
    @app.get("/live")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/tasks", response_model=TaskRecord)
    def create_task(
        payload: CreateTaskRequest,
        request: Request,
        user_id: str = Depends(current_user_id),
    ) -> TaskRecord:
        if payload.payload_chars() > settings.max_payload_chars:
            raise PayloadTooLargeError(
                f"Submission exceeds {settings.max_payload_chars} characters"
            )
        return _storage(request).create_task(
            user_id=user_id,
            title=payload.title,
            description=payload.description,
            code_content=payload.code_content,
            language=payload.language,
        )

    @app.get("/tasks", response_model=list[TaskRecord])
    def list_tasks(request: Request, user_id: str = Depends(current_user_id)) -> list[TaskRecord]:
        store = _storage(request)
        premium = store.get_or_create_profile(user_id).premium_user
        return [
            task_view(record, premium_access=premium or record.report_unlocked)
            for record in store.list_tasks(user_id)
        ]

    @app.get("/tasks/{task_id}", response_model=TaskRecord)
    def get_task(
        task_id: str, request: Request, user_id: str = Depends(current_user_id)
    ) -> TaskRecord:
        store = _storage(request)
        record = store.get_task(task_id, user_id=user_id)
        if record is None:
            raise TaskNotFoundError(task_id)
        return task_view(record, premium_access=_has_premium_access(store, record, user_id))

    @app.delete("/tasks/{task_id}", status_code=204)
    def delete_task(
        task_id: str, request: Request, user_id: str = Depends(current_user_id)
    ) -> Response:
        if not _storage(request).delete_task(task_id, user_id=user_id):
            raise TaskNotFoundError(task_id)
        return Response(status_code=204)

    @app.post("/tasks/{task_id}/evaluate", response_model=EvaluationAccepted, status_code=202)
    def evaluate_task(
        task_id: str,
        request: Request,
        background_tasks: BackgroundTasks,
        user_id: str = Depends(current_user_id),
    ) -> EvaluationAccepted:
        _storage(request)
        service: EvaluationService = request.app.state.evaluations
        record = service.request(task_id, user_id=user_id)
        background_tasks.add_task(service.run, task_id)
        return EvaluationAccepted(
            task_id=record.task_id, evaluation_status=record.evaluation_status
        )

    @app.get("/profile", response_model=UserProfile)
    def get_profile(request: Request, user_id: str = Depends(current_user_id)) -> UserProfile:
        return _storage(request).get_or_create_profile(user_id)

    @app.patch("/profile", response_model=UserProfile)
    def update_profile(
        payload: UpdateProfileRequest,
        request: Request,
        user_id: str = Depends(current_user_id),
    ) -> UserProfile:
        return _storage(request).update_profile(
            user_id, full_name=payload.full_name, avatar_url=payload.avatar_url
        )

    @app.get("/payments", response_model=list[PaymentRecord])
    def list_payments(
        request: Request, user_id: str = Depends(current_user_id)
    ) -> list[PaymentRecord]:
        return _storage(request).list_payments(user_id)

    @app.post("/payments/orders", response_model=OrderResponse)
    def create_order(
        payload: CreateOrderRequest,
        request: Request,
        user_id: str = Depends(current_user_id),
    ) -> OrderResponse:
        order = _payments(request).create_order(
            payload.task_id, user_id=user_id, amount=payload.amount
        )
        return OrderResponse(
            id=order.id,
            amount=order.amount,
            currency=order.currency,
            receipt=order.receipt,
            key_id=order.key_id,
        )

    @app.post("/payments/verify", response_model=VerifyPaymentResponse)
    def verify_payment(
        payload: VerifyPaymentRequest,
        request: Request,
        user_id: str = Depends(current_user_id),
    ) -> VerifyPaymentResponse:
        result = _payments(request).verify(
            payment_id=payload.razorpay_payment_id,
            order_id=payload.razorpay_order_id,
            signature=payload.razorpay_signature,
            task_id=payload.task_id,
            user_id=user_id,
        )
        return VerifyPaymentResponse(
            success=result.success, unlocked=result.unlocked, message=result.message
        )

    @app.post("/payments/webhook")
    async def payment_webhook(request: Request) -> dict[str, bool]:
        service = _payments(request)
        raw_body = await request.body()
        return await run_in_threadpool(
            service.handle_webhook,
            raw_body,
            request.headers.get(WEBHOOK_SIGNATURE_HEADER),
        )

    return app


app = create_app()
