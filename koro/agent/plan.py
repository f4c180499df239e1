"""Action plan model - the request-scoped sequence of shell commands."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class PlanState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


# Step origins the executor will run. Anything else is refused.
ORIGIN_MODEL = "model"
SKILL_ORIGIN_PREFIX = "skill:"


@dataclass
class ActionStep:
    """One concrete command and what happened when it ran."""

    command: str
    origin: str
    rollback: str | None = None
    intent: str = ""
    status: StepStatus = StepStatus.PENDING
    exit_code: int | None = None
    output: str = ""
    duration: float = 0.0

    @property
    def attempted(self) -> bool:
        return self.status not in (StepStatus.PENDING, StepStatus.RUNNING)

    def to_action(self) -> dict[str, Any]:
        return {"command": self.command, "status": self.status.value, "output": self.output}


@dataclass
class ActionPlan:
    """Ordered steps plus the single rollback command for the whole plan."""

    steps: list[ActionStep] = field(default_factory=list)
    rollback: str | None = None
    skill: str | None = None
    state: PlanState = PlanState.PENDING
    rollback_step: ActionStep | None = None

    @property
    def failed_step(self) -> ActionStep | None:
        for step in self.steps:
            if step.status in (StepStatus.FAILED, StepStatus.ROLLED_BACK):
                return step
        return None

    def to_actions(self) -> list[dict[str, Any]]:
        """Response entries for every attempted step, then the rollback."""
        actions = [step.to_action() for step in self.steps if step.attempted]
        if self.rollback_step is not None:
            entry = self.rollback_step.to_action()
            entry["rollback"] = True
            actions.append(entry)
        return actions

    def audit_record(self) -> str:
        """Multi-line outcome record for the daily log."""
        header = f"Action plan ({self.skill or 'model'}): {self.state.value}"
        lines = [header]
        for step in self.steps:
            if not step.attempted:
                lines.append(f"  [not attempted] {step.command}")
                continue
            lines.append(
                f"  [{step.status.value}] {step.command} "
                f"(exit {step.exit_code}, {step.duration:.2f}s)"
            )
            if step.output:
                lines.append("    " + step.output.replace("\n", "\n    "))
        if self.rollback_step is not None:
            rb = self.rollback_step
            lines.append(
                f"  [rollback {rb.status.value}] {rb.command} "
                f"(exit {rb.exit_code}, {rb.duration:.2f}s)"
            )
            if rb.output:
                lines.append("    " + rb.output.replace("\n", "\n    "))
        return "\n".join(lines)
