"""Step-by-step developer review of generated test code.

The workflow is a synchronous state machine. For every step it emits a
:class:`StepReviewRequested` event to a :class:`DecisionProvider` and blocks
until a :class:`StepDecision` comes back. Prompt rendering lives entirely in
the provider (see ``ConsoleDecisionProvider`` in the CLI).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Protocol

from ..core.config import Settings
from ..core.errors import InterventionStepFailure, RecorderError
from ..core.models import GenerationRequest, Step
from ..recorder.codegen_recorder import CodegenRecorder, extract_script_body
from .merge import append_manual_steps, merge_steps
from .steps import skip_step, split_steps

logger = logging.getLogger(__name__)

CODEGEN_PROVENANCE = "// Developer modified via codegen"
MANUAL_EDIT_PROVENANCE = "// Developer modified (manual edit)"


class WorkflowState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    PER_STEP_REVIEW = "per_step_review"
    ALL_STEPS_REVIEWED = "all_steps_reviewed"
    MANUAL_CAPTURE = "manual_capture"
    MERGING = "merging"
    DONE = "done"


class StepAction(str, Enum):
    ACCEPT = "accept"
    EDIT = "edit"
    SKIP = "skip"
    DEBUG = "debug"


@dataclass(frozen=True)
class StepReviewRequested:
    step: Step
    total: int
    environment: str
    base_url: str


@dataclass(frozen=True)
class StepDecision:
    action: StepAction
    code: Optional[str] = None


@dataclass
class Intervention:
    step_index: int
    code: str
    source: str


@dataclass
class InterventionResult:
    steps: List[Step]
    merged_code: str
    interventions: List[Intervention] = field(default_factory=list)
    manual_code: Optional[str] = None
    failures: List[InterventionStepFailure] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return sum(1 for step in self.steps if not step.skipped and not step.developer_modified)


class DecisionProvider(Protocol):
    def review(self, event: StepReviewRequested) -> StepDecision:
        ...

    def choose_step_to_replace(self, steps: List[Step], captured: str) -> int:
        ...

    def wait_for_resume(self, step: Step) -> None:
        ...

    def confirm(self, message: str, default: bool = False) -> bool:
        ...


def _capture_path(output_path: str, tag: str) -> Path:
    path = Path(output_path)
    if path.suffix == ".ts":
        return path.with_suffix(f".{tag}.ts")
    return path.with_name(f"{path.name}.{tag}.ts")


def manual_capture_path(output_path: str) -> Path:
    return _capture_path(output_path, "manual")


def edit_capture_path(output_path: str) -> Path:
    """Where codegen edits record; the output file itself is only written once, by the merge."""
    return _capture_path(output_path, "edit")


class InterventionWorkflow:
    def __init__(
        self,
        request: GenerationRequest,
        recorder: CodegenRecorder,
        decisions: DecisionProvider,
        settings: Optional[Settings] = None,
    ):
        self.request = request
        self.recorder = recorder
        self.decisions = decisions
        self.settings = settings or Settings()
        self.base_url = self.settings.base_url(request.environment)
        self.state = WorkflowState.IDLE
        self.history: List[WorkflowState] = [self.state]

    def _enter(self, state: WorkflowState) -> None:
        logger.debug("[Intervention] %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    # ---------------- Per-step review ----------------
    def _edit(self, steps: List[Step], current: Step, decision: StepDecision,
              interventions: List[Intervention], failures: List[InterventionStepFailure]) -> None:
        if decision.code is not None and decision.code.strip():
            current.code = f"{MANUAL_EDIT_PROVENANCE}\n{decision.code.strip()}"
            current.developer_modified = True
            current.skipped = False
            interventions.append(Intervention(current.index, decision.code.strip(), "manual"))
            return

        try:
            captured = self.recorder.record(self.base_url, edit_capture_path(self.request.output_path))
        except RecorderError as exc:
            failure = InterventionStepFailure(current.index, exc.cause)
            logger.warning("[Intervention] %s; step left unchanged", failure)
            failures.append(failure)
            return

        body = extract_script_body(captured)
        if not body:
            failure = InterventionStepFailure(current.index, "recording captured no actions")
            logger.warning("[Intervention] %s; step left unchanged", failure)
            failures.append(failure)
            return

        target = self.decisions.choose_step_to_replace(steps, body)
        if not isinstance(target, int) or not 0 <= target < len(steps):
            logger.warning("[Intervention] Invalid replacement index %r; using step %d", target, current.index + 1)
            target = current.index
        replaced = steps[target]
        replaced.code = f"{CODEGEN_PROVENANCE}\n{body}"
        replaced.developer_modified = True
        replaced.skipped = False
        interventions.append(Intervention(target, body, "codegen"))
        logger.info("[Intervention] Step %d replaced with recorded code", target + 1)

    def review_steps(self, steps: List[Step]):
        interventions: List[Intervention] = []
        failures: List[InterventionStepFailure] = []
        for step in steps:
            self._enter(WorkflowState.PER_STEP_REVIEW)
            event = StepReviewRequested(step=step, total=len(steps), environment=self.request.environment, base_url=self.base_url)
            decision = self.decisions.review(event)
            action = StepAction(decision.action)
            logger.info("[Intervention] Step %d/%d: %s", step.index + 1, len(steps), action.value)

            if action is StepAction.EDIT:
                self._edit(steps, step, decision, interventions, failures)
            elif action is StepAction.SKIP:
                skip_step(step)
            elif action is StepAction.DEBUG:
                self.decisions.wait_for_resume(step)
        self._enter(WorkflowState.ALL_STEPS_REVIEWED)
        return interventions, failures

    # ---------------- Manual capture ----------------
    def capture_manual_steps(self) -> Optional[str]:
        if not self.decisions.confirm("Do you want to launch Playwright codegen to record additional manual actions?"):
            return None
        self._enter(WorkflowState.MANUAL_CAPTURE)
        target = manual_capture_path(self.request.output_path)
        while True:
            try:
                code = self.recorder.record(self.base_url, target)
                logger.info("[Intervention] Manual actions recorded to %s", target)
                return code
            except RecorderError as exc:
                logger.warning("[Intervention] Error recording manual actions: %s", exc.cause)
                if not self.decisions.confirm("Codegen failed. Would you like to retry?"):
                    logger.info("[Intervention] Skipping manual codegen step")
                    return None

    # ---------------- Run ----------------
    def run(self, code: str, login_code: Optional[str] = None) -> InterventionResult:
        self._enter(WorkflowState.GENERATING)
        steps = split_steps(code)
        logger.info("[Intervention] Reviewing %d steps", len(steps))

        interventions, failures = self.review_steps(steps)
        manual_code = self.capture_manual_steps()

        self._enter(WorkflowState.MERGING)
        merged = merge_steps(steps, self.request.ticket, self.base_url, login_code)
        if manual_code:
            merged = append_manual_steps(merged, manual_code)

        self._enter(WorkflowState.DONE)
        return InterventionResult(
            steps=steps,
            merged_code=merged,
            interventions=interventions,
            manual_code=manual_code,
            failures=failures,
        )
