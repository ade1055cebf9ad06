"""Agents package: routing, knowledge retrieval, arithmetic and orchestration."""

from .types import AgentType, RoutingDecision, AgentResult, WorkflowStep, ChatResponse
from .router import RouterAgent
from .calculator import MathAgent
from .knowledge import KnowledgeAgent
from .personality import PersonalityDecorator
from .orchestrator import ChatOrchestrator, build_orchestrator

__all__ = [
    'AgentType',
    'RoutingDecision',
    'AgentResult',
    'WorkflowStep',
    'ChatResponse',
    'RouterAgent',
    'MathAgent',
    'KnowledgeAgent',
    'PersonalityDecorator',
    'ChatOrchestrator',
    'build_orchestrator'
]
