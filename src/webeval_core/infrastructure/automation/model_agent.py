"""
Model-driven automation executor

Drives an LLM through the step loop: each step sends the task instruction plus
the notes from earlier steps, and the model answers with its progress followed
by a "CONFIDENCE: <0..1>" line. The step is reported to the StepReporter and the
loop stops as soon as step control says so.
"""

from __future__ import annotations

import logging
import re

from webeval_core.domain.value_objects import (
    AutomationResult,
    ExecutionContext,
    ExecutionParameters,
)
from webeval_core.infrastructure.automation.base import (
    AutomationError,
    AutomationExecutor,
    StepReporter,
)
from webeval_core.infrastructure.automation.model_backends import ChatBackend

logger = logging.getLogger(__name__)

_DESCRIPTION_MAX_CHARS = 200


class ModelAgentExecutor(AutomationExecutor):
    """AutomationExecutor backed by a ChatBackend"""

    _CONFIDENCE_RE = re.compile(r"^\s*confidence\s*[:：]\s*([01](?:\.\d+)?|\.\d+)\s*$", re.IGNORECASE | re.MULTILINE)

    def __init__(self, backend: ChatBackend) -> None:
        self.backend = backend

    def execute(
        self,
        instruction: str,
        parameters: ExecutionParameters,
        context: ExecutionContext,
        steps: StepReporter,
    ) -> AutomationResult:
        notes: list[str] = []
        step_number = 0
        while True:
            step_number += 1
            prompt = self._build_step_prompt(instruction, notes, step_number, parameters.max_steps)
            try:
                reply = self.backend.complete(prompt)
            except Exception as e:
                raise AutomationError(f"Model call failed at step {step_number}: {e}") from e

            text, confidence = self.parse_reply(reply)
            notes.append(text)
            decision = steps.advance(self._describe(text), confidence)
            logger.debug(
                "[%s/%s] step %d confidence=%.2f continue=%s",
                context.evaluation_id, context.task_id, step_number, confidence, decision.should_continue,
            )
            if decision.is_error:
                raise AutomationError(decision.error_message)
            if not decision.should_continue:
                break

        return AutomationResult(text_result=notes[-1] if notes else "")

    @classmethod
    def parse_reply(cls, reply: str) -> tuple[str, float]:
        """
        Split a model reply into its text and confidence

        The last CONFIDENCE line wins; a reply without one has confidence 0.0.
        """
        matches = list(cls._CONFIDENCE_RE.finditer(reply or ""))
        if not matches:
            return (reply or "").strip(), 0.0
        confidence = min(1.0, max(0.0, float(matches[-1].group(1))))
        text = cls._CONFIDENCE_RE.sub("", reply).strip()
        return text, confidence

    @staticmethod
    def _describe(text: str) -> str:
        first_line = text.strip().splitlines()[0] if text.strip() else ""
        if len(first_line) > _DESCRIPTION_MAX_CHARS:
            return first_line[:_DESCRIPTION_MAX_CHARS - 3] + "..."
        return first_line

    @staticmethod
    def _build_step_prompt(instruction: str, notes: list[str], step_number: int, max_steps: int) -> str:
        lines = [
            "You are completing a web task step by step.",
            f"## Task\n{instruction}",
        ]
        if notes:
            history = "\n".join(f"{i}. {note}" for i, note in enumerate(notes, 1))
            lines.append(f"## Previous steps\n{history}")
        lines.append(
            f"## Step {step_number} of at most {max_steps}\n"
            "Describe what you do in this step and the result so far. "
            "If the task is done, state the final answer.\n"
            "End with a line of the form `CONFIDENCE: <number between 0 and 1>` "
            "giving your confidence that the task is complete."
        )
        return "\n\n".join(lines)
