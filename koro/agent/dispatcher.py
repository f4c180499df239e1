"""Request dispatcher - the single entry point into the core.

Every request that may touch memory or run actions holds the exclusive
memory lease from context building to the final log append. Once the lease
is held the request is shielded from cancellation and always runs to
completion, so a client disconnect can never leave a half-run plan behind.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import structlog

from koro.agent.context import AssembledContext, ContextAssembler
from koro.agent.executor import ActionExecutor
from koro.agent.gateway import ModelGateway, ModelReply
from koro.agent.plan import ORIGIN_MODEL, SKILL_ORIGIN_PREFIX, ActionPlan, ActionStep, PlanState
from koro.config.schema import Config
from koro.errors import (
    ActionFailed,
    Busy,
    InvalidRequest,
    KoroError,
    ModelUnavailable,
    ParseFailure,
    SkillNotFound,
    StorageUnavailable,
)
from koro.memory.lease import MemoryLease
from koro.memory.models import (
    WRITABLE_DOCUMENTS,
    CoreDocument,
    LogRecord,
    parse_date,
    parse_period_id,
)
from koro.memory.store import DateRange, MemoryStore
from koro.providers.base import LLMProvider
from koro.skills.library import SkillLibrary

logger = structlog.get_logger(__name__)

CONSOLIDATE_INSTRUCTION = "/consolidate"

BUSY_TEXT = "I'm busy with another request right now. Please try again in a moment."
MODEL_UNAVAILABLE_TEXT = "I can't think right now; my language model is unreachable. Please try again later."
STORAGE_UNAVAILABLE_TEXT = "Sorry, I couldn't reach my memory storage, so nothing was changed."
INTERNAL_ERROR_TEXT = "Sorry, something went wrong while handling that request."


@dataclass
class DispatchResult:
    """What the endpoint returns for one request."""

    text: str
    actions: list[dict[str, Any]] = field(default_factory=list)
    error_code: str | None = None
    error_message: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"text": self.text, "actions": self.actions}
        if self.error_code:
            data["error"] = {"code": self.error_code, "message": self.error_message or ""}
        if self.warnings:
            data["warnings"] = self.warnings
        return data


class RequestDispatcher:
    """Serializes memory access and drives context -> model -> actions."""

    def __init__(
        self,
        store: MemoryStore,
        skills: SkillLibrary,
        assembler: ContextAssembler,
        gateway: ModelGateway,
        executor: ActionExecutor,
        lease: MemoryLease | None = None,
    ):
        self.store = store
        self.skills = skills
        self.assembler = assembler
        self.gateway = gateway
        self.executor = executor
        self.lease = lease or MemoryLease()

    @classmethod
    def from_config(cls, config: Config, provider: LLMProvider) -> "RequestDispatcher":
        """Wire every component from configuration."""
        store = MemoryStore(config.memory_path)
        skills = SkillLibrary(config.skills_path)
        workspace = config.workspace_path
        workspace.mkdir(parents=True, exist_ok=True)
        return cls(
            store=store,
            skills=skills,
            assembler=ContextAssembler(
                store,
                skills,
                max_chars=config.context.max_chars,
                max_excerpts=config.context.max_log_excerpts,
                window_days=config.context.excerpt_window_days,
            ),
            gateway=ModelGateway(
                provider,
                model=config.agent.model or None,
                timeout=config.agent.model_timeout,
                max_tokens=config.agent.max_tokens,
            ),
            executor=ActionExecutor(
                working_dir=workspace,
                timeout=config.executor.step_timeout,
                max_output_chars=config.executor.max_output_chars,
            ),
            lease=MemoryLease(timeout=config.memory.lease_timeout),
        )

    # ------------------------------------------------------------------
    # Inbound endpoint
    # ------------------------------------------------------------------

    async def handle(self, text: str) -> DispatchResult:
        """Handle one free-text request. Always returns a result."""
        log = logger.bind(chars=len(text))
        log.info("dispatcher.request_received")

        try:
            await self.lease.acquire(exclusive=True)
        except Busy as e:
            log.warning("dispatcher.busy")
            return DispatchResult(text=BUSY_TEXT, error_code=e.code, error_message=e.message)

        # From here on the request runs to completion even if the caller goes away.
        task = asyncio.ensure_future(self._run_leased(text))
        return await asyncio.shield(task)

    async def _run_leased(self, text: str) -> DispatchResult:
        try:
            stripped = text.strip()
            if stripped == CONSOLIDATE_INSTRUCTION or stripped.startswith(CONSOLIDATE_INSTRUCTION + " "):
                return await self._consolidate(stripped[len(CONSOLIDATE_INSTRUCTION):].strip())
            return await self._process(text)
        except StorageUnavailable as e:
            logger.error("dispatcher.storage_unavailable", error=e.message)
            return DispatchResult(
                text=STORAGE_UNAVAILABLE_TEXT, error_code=e.code, error_message=e.message
            )
        except KoroError as e:
            logger.warning("dispatcher.request_failed", code=e.code, error=e.message)
            return DispatchResult(text=f"Sorry, I couldn't do that: {e.message}",
                                  error_code=e.code, error_message=e.message)
        except Exception as e:
            logger.exception("dispatcher.internal_error")
            return DispatchResult(text=INTERNAL_ERROR_TEXT, error_code="internal_error",
                                  error_message=str(e))
        finally:
            self.lease.release(exclusive=True)
            logger.info("dispatcher.lease_released")

    async def _process(self, text: str) -> DispatchResult:
        today = date.today()
        context = self.assembler.build(text, today=today)
        result = DispatchResult(text="", warnings=list(context.warnings))

        try:
            reply = await self.gateway.complete(context, text)
        except ModelUnavailable as e:
            self.store.append_log(today, f"User: {text}")
            self.store.append_log(today, f"Model unavailable: {e.message}")
            result.text = MODEL_UNAVAILABLE_TEXT
            result.error_code, result.error_message = e.code, e.message
            return result

        result.text = reply.text or "(no reply)"
        if reply.parse_error:
            result.error_code, result.error_message = ParseFailure.code, reply.parse_error
            result.warnings.append(f"Actions and memory updates ignored: {reply.parse_error}")

        plans: list[ActionPlan] = []
        if reply.plan:
            try:
                plans = await self._build_plans(reply, context)
            except (SkillNotFound, ParseFailure) as e:
                result.text = f"{result.text}\n\n(I couldn't run the requested actions: {e.message})".strip()
                result.error_code, result.error_message = e.code, e.message
                plans = []

        executed: list[ActionPlan] = []
        for plan in plans:
            executed.append(await self.executor.run(plan))
            result.actions.extend(plan.to_actions())
            if plan.state is not PlanState.SUCCEEDED:
                failed = plan.failed_step
                result.error_code = ActionFailed.code
                result.error_message = f"Step failed: {failed.command}" if failed else "Action failed"
                break

        self._apply_memory_updates(reply, result)

        self.store.append_log(today, f"User: {text}")
        self.store.append_log(today, f"Assistant: {result.text}")
        for plan in executed:
            self.store.append_log(today, plan.audit_record())

        logger.info(
            "dispatcher.request_completed",
            actions=len(result.actions),
            error=result.error_code,
        )
        return result

    async def _build_plans(self, reply: ModelReply, context: AssembledContext) -> list[ActionPlan]:
        """One plan per skill invocation; consecutive literal commands share a plan."""
        plans: list[ActionPlan] = []
        literal: ActionPlan | None = None

        for action in reply.plan or []:
            if action.skill:
                skill = self.skills.resolve(action.skill)
                commands, rollback = await self.gateway.translate_skill(skill, context)
                origin = f"{SKILL_ORIGIN_PREFIX}{skill.name}"
                plans.append(ActionPlan(
                    steps=[
                        ActionStep(command=cmd, origin=origin, intent=intent)
                        for cmd, intent in zip(commands, skill.steps)
                    ],
                    rollback=rollback,
                    skill=skill.name,
                ))
                literal = None
            else:
                if literal is None:
                    literal = ActionPlan()
                    plans.append(literal)
                literal.steps.append(ActionStep(
                    command=action.command,
                    origin=ORIGIN_MODEL,
                    rollback=action.rollback,
                ))

        return plans

    def _apply_memory_updates(self, reply: ModelReply, result: DispatchResult) -> None:
        for update in reply.memory_updates:
            try:
                doc = CoreDocument.parse(update.name)
            except InvalidRequest as e:
                result.warnings.append(e.message)
                continue
            if doc not in WRITABLE_DOCUMENTS:
                result.warnings.append(f"{doc.filename} is read-only")
                continue
            self.store.write_core(doc, update.content)

    async def _consolidate(self, argument: str) -> DispatchResult:
        """Summarize a day's log into the current-state document."""
        day = parse_date(argument) if argument else date.today()
        records = self.store.read_daily_log(day)
        if not records:
            return DispatchResult(text=f"Nothing to consolidate for {day.isoformat()}.")

        state = self.store.read_core(CoreDocument.STATE)
        try:
            summary = await self.gateway.summarize_day(state, day.isoformat(), records)
        except ModelUnavailable as e:
            return DispatchResult(text=MODEL_UNAVAILABLE_TEXT, error_code=e.code,
                                  error_message=e.message)

        self.store.write_core(CoreDocument.STATE, summary)
        self.store.append_log(date.today(), f"Consolidated log for {day.isoformat()} "
                                            f"({len(records)} records) into state.md")
        logger.info("dispatcher.consolidated", day=day.isoformat(), records=len(records))
        return DispatchResult(text=f"Consolidated {len(records)} records from {day.isoformat()}.")

    # ------------------------------------------------------------------
    # Tool-invocation protocol
    # ------------------------------------------------------------------

    async def read_core_memory(self, name: str) -> str:
        async with self.lease.shared():
            return self.store.read_core(name)

    async def update_core_memory(self, name: str, content: str) -> str:
        doc = CoreDocument.parse(name)
        if doc not in WRITABLE_DOCUMENTS:
            raise InvalidRequest(f"{doc.filename} is read-only")
        async with self.lease.exclusive():
            self.store.write_core(doc, content)
            self.store.append_log(date.today(), f"Core memory {doc.filename} updated via tool")
        return f"Updated {doc.filename}"

    async def search_logs(
        self,
        query: str,
        start: str | date | None = None,
        end: str | date | None = None,
    ) -> list[LogRecord]:
        date_range: DateRange = (
            parse_date(start) if start else None,
            parse_date(end) if end else None,
        )
        async with self.lease.shared():
            return list(self.store.search_logs(query, date_range))

    async def read_daily_log(self, day: str | date) -> list[LogRecord]:
        day = parse_date(day)
        async with self.lease.shared():
            return self.store.read_daily_log(day)

    async def append_note(self, text: str) -> str:
        if not text.strip():
            raise InvalidRequest("Note text must not be empty")
        async with self.lease.exclusive():
            self.store.append_log(date.today(), f"Note: {text}")
        return "Note appended."

    async def read_summary(self, period: str, period_id: str) -> tuple[str | None, list[str]]:
        """The summary (or None) plus the ids stored for that period."""
        period, period_id = parse_period_id(period, period_id)
        async with self.lease.shared():
            return self.store.read_summary(period, period_id), self.store.list_summaries(period)

    async def write_summary(self, period: str, period_id: str, content: str) -> str:
        period, period_id = parse_period_id(period, period_id)
        if not content.strip():
            raise InvalidRequest("Summary content must not be empty")
        async with self.lease.exclusive():
            self.store.write_summary(period, period_id, content)
            self.store.append_log(date.today(), f"Wrote {period.value} summary {period_id}")
        return f"Written {period.value} summary: {period_id}"

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def reload_skills(self) -> int:
        """Reload the skill library while no request can resolve a skill."""
        async with self.lease.exclusive():
            count = self.skills.reload()
        logger.info("dispatcher.skills_reloaded", count=count)
        return count
