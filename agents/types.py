"""Shared data contracts for routing and agent results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class AgentType(str, Enum):
    """Handlers a message can be routed to."""
    KNOWLEDGE = "KNOWLEDGE"
    MATH = "MATH"


@dataclass(frozen=True)
class RoutingDecision:
    """Router output for one message.

    `processing_time_ms` is measured per call and excluded from equality, so
    routing the same message twice compares equal.
    """
    agent: AgentType
    confidence: float
    reason: str
    processing_time_ms: int = field(default=0, compare=False)


@dataclass(frozen=True)
class AgentResult:
    """Answer produced by a handler."""
    success: bool
    answer: str
    sources: List[str] = field(default_factory=list)
    execution_time_ms: int = 0


@dataclass(frozen=True)
class WorkflowStep:
    agent: str
    decision: Optional[str] = None

    def to_dict(self) -> dict:
        step = {"agent": self.agent}
        if self.decision is not None:
            step["decision"] = self.decision
        return step


@dataclass(frozen=True)
class ChatResponse:
    """Composed reply returned to the caller."""
    response: str
    source_agent_response: str
    agent_workflow: List[WorkflowStep] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "response": self.response,
            "source_agent_response": self.source_agent_response,
            "agent_workflow": [step.to_dict() for step in self.agent_workflow],
        }
