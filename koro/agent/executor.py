"""Action executor - runs an action plan step by step with rollback."""

import asyncio
import re
import time
from dataclasses import dataclass
from pathlib import Path

import structlog

from koro.agent.plan import (
    ORIGIN_MODEL,
    SKILL_ORIGIN_PREFIX,
    ActionPlan,
    ActionStep,
    PlanState,
    StepStatus,
)

logger = structlog.get_logger(__name__)


@dataclass
class CommandResult:
    exit_code: int | None
    output: str
    duration: float

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ActionExecutor:
    """
    Executes action plans through the shell.

    Steps run strictly in order; the first failure halts the plan and the
    plan's rollback (or the failed step's own) runs exactly once.
    """

    # Patterns for potentially dangerous commands
    DANGEROUS_PATTERNS = [
        r"\brm\s+-[a-z]*[rf][a-z]*\s+(/|~|\*)(\s|$)",  # rm -rf /, ~, *
        r"\b(mkfs|diskpart)\b",                          # disk operations
        r"\bformat\s+[a-z]:",                            # format C:
        r"\bdd\s+if=",                                   # dd
        r">\s*/dev/sd",                                  # write to disk
        r"\b(shutdown|reboot|poweroff|halt)\b",
        r":\(\)\s*\{.*\};\s*:",                          # fork bomb
    ]

    def __init__(
        self,
        working_dir: Path | None = None,
        timeout: float = 60.0,
        max_output_chars: int = 4000,
    ):
        self.working_dir = working_dir
        self.timeout = timeout
        self.max_output_chars = max_output_chars

    def is_dangerous(self, command: str) -> bool:
        """Check if command matches dangerous patterns."""
        lower = command.lower()
        return any(re.search(pattern, lower) for pattern in self.DANGEROUS_PATTERNS)

    @staticmethod
    def _origin_allowed(origin: str) -> bool:
        return origin == ORIGIN_MODEL or (
            origin.startswith(SKILL_ORIGIN_PREFIX) and len(origin) > len(SKILL_ORIGIN_PREFIX)
        )

    def _bound(self, text: str) -> str:
        if len(text) > self.max_output_chars:
            return text[: self.max_output_chars] + "\n... (truncated)"
        return text

    async def run_command(self, command: str) -> CommandResult:
        """Run one shell command with the step timeout."""
        if self.is_dangerous(command):
            return CommandResult(
                exit_code=None,
                output="Error: Command blocked by safety guard (potentially dangerous)",
                duration=0.0,
            )

        cwd = str(self.working_dir) if self.working_dir else None
        started = time.monotonic()
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
        except OSError as e:
            return CommandResult(
                exit_code=None,
                output=f"Error executing command: {e}",
                duration=time.monotonic() - started,
            )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return CommandResult(
                exit_code=None,
                output=f"Error: Command timed out after {self.timeout}s",
                duration=time.monotonic() - started,
            )

        output_parts = []
        if stdout:
            output_parts.append(stdout.decode("utf-8", errors="replace").strip())
        if stderr:
            stderr_text = stderr.decode("utf-8", errors="replace").strip()
            if stderr_text:
                output_parts.append(f"STDERR:\n{stderr_text}")

        return CommandResult(
            exit_code=process.returncode,
            output=self._bound("\n".join(p for p in output_parts if p)),
            duration=time.monotonic() - started,
        )

    async def _run_step(self, step: ActionStep) -> None:
        step.status = StepStatus.RUNNING
        if not self._origin_allowed(step.origin):
            step.status = StepStatus.FAILED
            step.output = f"Error: refusing command of unknown origin {step.origin!r}"
            return
        result = await self.run_command(step.command)
        step.exit_code = result.exit_code
        step.output = result.output
        step.duration = result.duration
        step.status = StepStatus.SUCCEEDED if result.ok else StepStatus.FAILED

    async def run(self, plan: ActionPlan) -> ActionPlan:
        """Execute ``plan`` in place and return it."""
        plan.state = PlanState.RUNNING
        log = logger.bind(skill=plan.skill, steps=len(plan.steps))
        log.info("executor.plan_started")

        for index, step in enumerate(plan.steps):
            await self._run_step(step)
            if step.status is StepStatus.SUCCEEDED:
                log.info("executor.step_succeeded", index=index, command=step.command,
                         duration=round(step.duration, 3))
                continue

            log.warning("executor.step_failed", index=index, command=step.command,
                        exit_code=step.exit_code)
            plan.state = PlanState.FAILED
            await self._rollback(plan, step)
            return plan

        plan.state = PlanState.SUCCEEDED
        log.info("executor.plan_succeeded")
        return plan

    async def _rollback(self, plan: ActionPlan, failed: ActionStep) -> None:
        command = failed.rollback or plan.rollback
        if not command:
            return

        rollback = ActionStep(command=command, origin=failed.origin, intent="rollback")
        plan.rollback_step = rollback
        await self._run_step(rollback)

        if rollback.status is StepStatus.SUCCEEDED:
            plan.state = PlanState.ROLLED_BACK
            if failed.rollback:
                # The step undid itself.
                failed.status = StepStatus.ROLLED_BACK
            logger.info("executor.rollback_succeeded", command=command)
        else:
            # Recorded, never retried.
            logger.error("executor.rollback_failed", command=command,
                         exit_code=rollback.exit_code)
