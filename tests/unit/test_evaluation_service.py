import json
import logging

import pytest
from conftest import FakeInferenceGateway

from evalmate.config.settings import Settings
from evalmate.errors import EvaluationInProgressError, TaskNotFoundError
from evalmate.evaluation.service import EvaluationService
from evalmate.llm.fallback import ModelFallbackCaller
from evalmate.storage.memory import InMemoryEvaluationStore


class RecordingStore(InMemoryEvaluationStore):
    def __init__(self) -> None:
        super().__init__()
        self.transitions: list[str] = []

    def begin_evaluation(self, task_id, *, user_id):
        record = super().begin_evaluation(task_id, user_id=user_id)
        if record is not None:
            self.transitions.append(record.evaluation_status)
        return record

    def update_task(self, task_id, *, status, evaluation):
        self.transitions.append(status)
        return super().update_task(task_id, status=status, evaluation=evaluation)


def _service(store, gateway: FakeInferenceGateway, **settings) -> EvaluationService:
    caller = ModelFallbackCaller(
        gateway,
        preferred_models=["model-a", "model-b"],
        preferred_families=["instant"],
        excluded_markers=["whisper"],
    )
    return EvaluationService(store, caller=caller, settings=Settings(**settings))


def _task(store) -> str:
    return store.create_task(
        user_id="user-1",
        title="Binary search",
        description="Find an element in a sorted list.",
        code_content="def bs(xs, x): ...",
        language="python",
    ).task_id


def test_status_moves_pending_processing_completed(evaluation_payload, insights_payload) -> None:
    store = RecordingStore()
    gateway = FakeInferenceGateway([json.dumps(evaluation_payload), json.dumps(insights_payload)])
    service = _service(store, gateway)
    task_id = _task(store)
    assert store.get_task(task_id).evaluation_status == "pending"

    accepted = service.request(task_id, user_id="user-1")
    assert accepted.evaluation_status == "processing"
    assert gateway.calls == []

    final = service.run(task_id)

    assert store.transitions == ["processing", "completed"]
    assert final.evaluation_status == "completed"
    assert final.ai_evaluation["premiumInsights"]["industryAverage"] == 72


def test_unavailable_models_mark_task_failed_once() -> None:
    store = RecordingStore()
    gateway = FakeInferenceGateway(failing_models=("model-a", "model-b"), available=["whisper-1"])
    service = _service(store, gateway)
    task_id = _task(store)
    service.request(task_id, user_id="user-1")

    final = service.run(task_id)

    assert store.transitions == ["processing", "failed"]
    assert final.ai_evaluation is None
    assert gateway.list_calls == 1


def test_unexpected_error_marks_task_failed() -> None:
    store = RecordingStore()
    gateway = FakeInferenceGateway([RuntimeError("socket exploded")])
    service = _service(store, gateway)
    task_id = _task(store)
    service.request(task_id, user_id="user-1")

    final = service.run(task_id)

    assert final.evaluation_status == "failed"
    assert store.transitions == ["processing", "failed"]


def test_premium_insights_error_still_completes(evaluation_payload) -> None:
    store = InMemoryEvaluationStore()
    gateway = FakeInferenceGateway([json.dumps(evaluation_payload), RuntimeError("boom")])
    service = _service(store, gateway)
    task_id = _task(store)
    service.request(task_id, user_id="user-1")

    final = service.run(task_id)

    assert final.evaluation_status == "completed"
    assert final.ai_evaluation["score"] == 8
    assert "premiumInsights" not in final.ai_evaluation


def test_request_rejects_foreign_and_processing_tasks() -> None:
    store = InMemoryEvaluationStore()
    service = _service(store, FakeInferenceGateway())
    task_id = _task(store)

    with pytest.raises(TaskNotFoundError):
        service.request(task_id, user_id="someone-else")

    service.request(task_id, user_id="user-1")
    with pytest.raises(EvaluationInProgressError):
        service.request(task_id, user_id="user-1")


def test_run_on_deleted_task_is_a_no_op() -> None:
    store = InMemoryEvaluationStore()
    service = _service(store, FakeInferenceGateway())

    assert service.run("missing") is None


def test_two_sequential_runs_store_second_result(evaluation_payload) -> None:
    store = InMemoryEvaluationStore()
    second = dict(evaluation_payload, score=4, strengths=["Readable"])
    gateway = FakeInferenceGateway([json.dumps(evaluation_payload), json.dumps(second)])
    service = _service(store, gateway, premium_insights_enabled=False)
    task_id = _task(store)

    for _ in range(2):
        service.request(task_id, user_id="user-1")
        service.run(task_id)

    stored = store.get_task(task_id).ai_evaluation
    assert stored["score"] == 4
    assert stored["strengths"] == ["Readable"]


def test_completed_log_line_reports_model_attempts(evaluation_payload, caplog) -> None:
    store = InMemoryEvaluationStore()
    gateway = FakeInferenceGateway(
        [json.dumps(evaluation_payload), "no insights"], failing_models=("model-a",)
    )
    service = _service(store, gateway, max_code_chars=5)
    task_id = _task(store)
    service.request(task_id, user_id="user-1")

    with caplog.at_level(logging.INFO, logger="evalmate.evaluation.service"):
        service.run(task_id)

    assert (
        "evaluation event=completed task_id=%s model=model-b score=8 premium_insights=False "
        "attempts=2 used_probe=False code_truncated=True" % task_id
    ) in caplog.text
