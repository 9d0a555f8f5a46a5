"""Task evaluation state machine: pending -> processing -> completed | failed."""

from __future__ import annotations

import logging
from typing import Any

from evalmate.config.settings import Settings
from evalmate.errors import EvaluationInProgressError, TaskNotFoundError
from evalmate.graph.state import WorkflowDeps, initial_state
from evalmate.graph.workflow import build_graph
from evalmate.llm.fallback import ModelFallbackCaller
from evalmate.storage.base import EvaluationStore
from evalmate.storage.models import EvaluationStatus, TaskRecord

logger = logging.getLogger(__name__)


class EvaluationService:
    def __init__(
        self,
        store: EvaluationStore,
        *,
        caller: ModelFallbackCaller,
        settings: Settings,
    ) -> None:
        self.store = store
        self.graph = build_graph(
            WorkflowDeps(
                caller=caller,
                max_tokens=settings.llm_max_tokens,
                insights_max_tokens=settings.llm_insights_max_tokens,
                max_code_chars=settings.max_code_chars,
                premium_insights_enabled=settings.premium_insights_enabled,
            )
        )

    def request(self, task_id: str, *, user_id: str) -> TaskRecord:
        """Move an owned task to ``processing`` before any external call is made."""
        if self.store.get_task(task_id, user_id=user_id) is None:
            raise TaskNotFoundError(task_id)

        started = self.store.begin_evaluation(task_id, user_id=user_id)
        if started is None:
            if self.store.get_task(task_id, user_id=user_id) is None:
                raise TaskNotFoundError(task_id)
            raise EvaluationInProgressError("Task evaluation is already in progress")

        logger.info("evaluation event=accepted task_id=%s user_id=%s", task_id, user_id)
        return started

    def run(self, task_id: str) -> TaskRecord | None:
        """Execute the workflow and store exactly one terminal status."""
        task = self.store.get_task(task_id)
        if task is None:
            logger.warning("evaluation event=task_missing task_id=%s", task_id)
            return None

        state = initial_state(
            task.task_id,
            title=task.title,
            description=task.description,
            code=task.code_content,
            language=task.language,
        )
        try:
            final_state: dict[str, Any] = self.graph.invoke(state)
        except Exception as exc:  # noqa: BLE001
            logger.exception("evaluation event=failed task_id=%s kind=unexpected", task_id)
            return self._finish(task_id, status="failed", evaluation=None, reason=str(exc))

        error = final_state.get("error")
        result = final_state.get("result")
        if error or result is None:
            error = error or {"kind": "unexpected", "detail": "workflow produced no result"}
            logger.error(
                "evaluation event=failed task_id=%s kind=%s detail=%s",
                task_id,
                error.get("kind"),
                str(error.get("detail", ""))[:400],
            )
            return self._finish(task_id, status="failed", evaluation=None, reason=error.get("kind"))

        telemetry = final_state.get("telemetry") or {}
        logger.info(
            "evaluation event=completed task_id=%s model=%s score=%s premium_insights=%s "
            "attempts=%s used_probe=%s code_truncated=%s",
            task_id,
            final_state.get("model"),
            result.get("score"),
            "premiumInsights" in result,
            len(telemetry.get("attempts", [])),
            telemetry.get("used_probe", False),
            telemetry.get("code_truncated", False),
        )
        return self._finish(task_id, status="completed", evaluation=result)

    def _finish(
        self,
        task_id: str,
        *,
        status: EvaluationStatus,
        evaluation: dict[str, Any] | None,
        reason: str | None = None,
    ) -> TaskRecord | None:
        try:
            return self.store.update_task(task_id, status=status, evaluation=evaluation)
        except KeyError:
            logger.warning(
                "evaluation event=task_deleted task_id=%s status=%s reason=%s",
                task_id,
                status,
                reason,
            )
            return None
