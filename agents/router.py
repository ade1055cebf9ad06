"""Heuristic message router.

Scores a message against arithmetic patterns first and knowledge keywords
second, and picks the handler that owns it:

1. Explicit arithmetic cues ("quanto é 2+2", "calculate 3*4", "5 + 5 = ?") -> 0.95
2. A string made only of digits, operators and parentheses -> 0.9
3. Two numbers joined by an operator anywhere in the text -> 0.85
4. A math keyword ("soma", "multiplique", ...) -> 0.7

Math confidence >= 0.8 routes to MATH. Otherwise knowledge confidence is
0.3 per matched keyword, capped at 1.0; >= 0.6 routes to KNOWLEDGE. Anything
else still goes to KNOWLEDGE at 0.5 so no message is refused for being
ambiguous.

Routing is pure: the same text always yields the same decision.
"""

import re
import time
from typing import Optional, Tuple

from observability.logging import get_structured_logger
from .types import AgentType, RoutingDecision

decision_log = get_structured_logger(__name__, component="RouterAgent")

_EXPRESSION = r"[\d+\-*/().\s]+"

MATH_PATTERNS = [
    re.compile(r"quanto é\s+" + _EXPRESSION, re.IGNORECASE),
    re.compile(r"how much is\s+" + _EXPRESSION, re.IGNORECASE),
    re.compile(r"calcule\s+" + _EXPRESSION, re.IGNORECASE),
    re.compile(r"calculate\s+" + _EXPRESSION, re.IGNORECASE),
    re.compile(_EXPRESSION + r"\s*=\s*\?", re.IGNORECASE),
]

PURE_ARITHMETIC = re.compile(r"^[\d\s+\-*/().]+$")
BINARY_OPERATION = re.compile(r"\d+[+\-*/]\d+")

MATH_KEYWORDS = ("quanto é", "calcule", "calculate", "soma", "subtraia", "multiplique", "divida")

# Matched as substrings and counted independently, so overlapping keywords
# ("pix" inside "infinitepay pix") each add to the score.
KNOWLEDGE_KEYWORDS = (
    "como", "how", "o que é", "what is", "quem", "who",
    "quando", "when", "onde", "where", "por que", "why",
    "explique", "explain", "dúvida", "doubt", "ajuda", "help",
    "infinitepay", "pix", "transferência", "pagamento",
)

MATH_THRESHOLD = 0.8
KNOWLEDGE_THRESHOLD = 0.6
KNOWLEDGE_WEIGHT = 0.3
DEFAULT_CONFIDENCE = 0.5

MATH_REASON = "Mensagem contém expressão matemática clara"
KNOWLEDGE_REASON = "Mensagem é uma pergunta de conhecimento geral"
DEFAULT_REASON = "Não foi possível determinar com certeza, default para KnowledgeAgent"


def math_confidence(message: str) -> float:
    for pattern in MATH_PATTERNS:
        if pattern.search(message):
            return 0.95

    if PURE_ARITHMETIC.match(message):
        return 0.9

    if BINARY_OPERATION.search(message):
        return 0.85

    if any(keyword in message for keyword in MATH_KEYWORDS):
        return 0.7

    return 0.0


def knowledge_confidence(message: str) -> float:
    matches = sum(1 for keyword in KNOWLEDGE_KEYWORDS if keyword in message)
    return min(1.0, matches * KNOWLEDGE_WEIGHT)


def classify(message: str) -> Tuple[AgentType, float, str]:
    """Agent, confidence and reason for a message."""
    text = message.lower().strip()

    score = math_confidence(text)
    if score >= MATH_THRESHOLD:
        return AgentType.MATH, score, MATH_REASON

    score = knowledge_confidence(text)
    if score >= KNOWLEDGE_THRESHOLD:
        return AgentType.KNOWLEDGE, score, KNOWLEDGE_REASON

    return AgentType.KNOWLEDGE, DEFAULT_CONFIDENCE, DEFAULT_REASON


class RouterAgent:
    """Classifies messages into KNOWLEDGE or MATH."""

    def route(self, message: str,
              conversation_id: Optional[str] = None,
              user_id: Optional[str] = None) -> RoutingDecision:
        start = time.perf_counter()
        agent, confidence, reason = classify(message)
        processing_time_ms = int((time.perf_counter() - start) * 1000)

        decision = RoutingDecision(
            agent=agent,
            confidence=confidence,
            reason=reason,
            processing_time_ms=processing_time_ms,
        )
        decision_log.record(
            "route_chosen",
            "Routing decision made",
            conversation_id=conversation_id,
            user_id=user_id,
            execution_time_ms=processing_time_ms,
            agent=agent.value,
            confidence=confidence,
            reason=reason,
        )
        return decision
