"""Agent core: context assembly, model gateway, action execution, dispatch."""

from koro.agent.context import AssembledContext, ContextAssembler
from koro.agent.dispatcher import CONSOLIDATE_INSTRUCTION, DispatchResult, RequestDispatcher
from koro.agent.executor import ActionExecutor
from koro.agent.gateway import ModelGateway, ModelReply, PlannedAction, parse_model_output
from koro.agent.plan import ActionPlan, ActionStep, PlanState, StepStatus

__all__ = [
    "CONSOLIDATE_INSTRUCTION",
    "ActionExecutor",
    "ActionPlan",
    "ActionStep",
    "AssembledContext",
    "ContextAssembler",
    "DispatchResult",
    "ModelGateway",
    "ModelReply",
    "PlanState",
    "PlannedAction",
    "RequestDispatcher",
    "StepStatus",
    "parse_model_output",
]
