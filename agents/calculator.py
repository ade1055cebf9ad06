"""Arithmetic agent.

Asks the language model to interpret arithmetic written in natural language.
When the model is not configured or the call fails, falls back to a strict
local evaluator that accepts exactly one binary operation
(``number operator number``) and never evaluates arbitrary code.
"""

import logging
import math
import operator
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from observability.logging import get_structured_logger, elapsed_ms
from .llm import LLMClient
from .types import AgentResult

logger = logging.getLogger(__name__)
decision_log = get_structured_logger(__name__, component="MathAgent")

MATH_SYSTEM_INSTRUCTION = (
    "Você é um assistente matemático. Interprete a expressão aritmética descrita pelo usuário, "
    "mesmo quando escrita em linguagem natural, e responda apenas com o resultado numérico "
    "seguido de uma breve explicação entre parênteses. "
    "Responda no mesmo idioma da pergunta."
)

ALLOWED_CHARACTERS = re.compile(r"[^\d+\-*/().]")
VALID_EXPRESSION = re.compile(r"^[\d+\-*/().]+$")
TOKEN = re.compile(r"\d+(?:\.\d+)?|\.\d+|[+\-*/()]")


class ExpressionError(ValueError):
    """The text does not contain a usable arithmetic expression."""


class ExpressionTooComplexError(ExpressionError):
    """The expression is more than one binary operation."""


class Operator(str, Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"


def _divide(left: float, right: float) -> float:
    if right == 0:
        return math.nan
    return left / right


_OPERATIONS = {
    Operator.ADD: operator.add,
    Operator.SUBTRACT: operator.sub,
    Operator.MULTIPLY: operator.mul,
    Operator.DIVIDE: _divide,
}


@dataclass(frozen=True)
class BinaryExpression:
    left: float
    operator: Operator
    right: float

    def evaluate(self) -> float:
        return _OPERATIONS[self.operator](self.left, self.right)

    def __str__(self) -> str:
        return f"{format_number(self.left)} {self.operator.value} {format_number(self.right)}"


def format_number(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.10g}"


def clean_expression(text: str) -> str:
    """Keep only digits, the four operators, parentheses and the decimal point."""
    cleaned = ALLOWED_CHARACTERS.sub("", text)
    if not cleaned or not VALID_EXPRESSION.match(cleaned):
        raise ExpressionError(f"No arithmetic expression found in: {text!r}")
    return cleaned


def tokenize(expression: str) -> List[str]:
    tokens = TOKEN.findall(expression)
    if "".join(tokens) != expression:
        raise ExpressionError(f"Malformed expression: {expression!r}")
    return tokens


def _number(token: str) -> float:
    try:
        return float(token)
    except ValueError:
        raise ExpressionTooComplexError("Expression too complex for fallback") from None


def parse_expression(text: str) -> BinaryExpression:
    """Parse `text` into a single binary operation.

    Raises ExpressionError when nothing arithmetic remains after cleanup and
    ExpressionTooComplexError for anything other than ``a op b``.
    """
    tokens = tokenize(clean_expression(text))
    if len(tokens) != 3:
        raise ExpressionTooComplexError("Expression too complex for fallback")

    left, symbol, right = tokens
    try:
        op = Operator(symbol)
    except ValueError:
        raise ExpressionTooComplexError("Expression too complex for fallback") from None

    return BinaryExpression(left=_number(left), operator=op, right=_number(right))


def evaluate_fallback(text: str) -> float:
    return parse_expression(text).evaluate()


class MathAgent:
    """Evaluates arithmetic questions."""

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm

    @property
    def uses_model(self) -> bool:
        return self.llm is not None and self.llm.is_configured

    async def evaluate(self, message: str,
                       conversation_id: Optional[str] = None,
                       user_id: Optional[str] = None) -> AgentResult:
        """Compute the answer for `message`; never raises for bad input."""
        start = time.perf_counter()

        if self.uses_model:
            try:
                answer = await self.llm.complete(MATH_SYSTEM_INSTRUCTION, message)
                decision_log.record("model_answer", "MathAgent execution",
                                    conversation_id=conversation_id, user_id=user_id,
                                    execution_time_ms=elapsed_ms(start))
                return AgentResult(success=True, answer=answer, execution_time_ms=elapsed_ms(start))
            except Exception as e:
                decision_log.record("fallback_taken", f"Model calculation failed, using local evaluator: {e}",
                                    level=logging.WARNING, conversation_id=conversation_id,
                                    user_id=user_id, execution_time_ms=elapsed_ms(start))
        else:
            decision_log.record("fallback_taken", "Language model not configured, using local evaluator",
                                conversation_id=conversation_id, user_id=user_id,
                                execution_time_ms=elapsed_ms(start))

        return self._evaluate_locally(message, start, conversation_id, user_id)

    def _evaluate_locally(self, message: str, start: float,
                          conversation_id: Optional[str],
                          user_id: Optional[str]) -> AgentResult:
        try:
            expression = parse_expression(message)
        except ExpressionTooComplexError as e:
            decision_log.record("fallback_failed", str(e), level=logging.WARNING,
                                conversation_id=conversation_id, user_id=user_id,
                                execution_time_ms=elapsed_ms(start))
            return AgentResult(
                success=False,
                answer=(f"Não foi possível calcular a expressão: {message}. "
                        "A expressão é complexa demais para o modo offline; "
                        "use apenas dois números e um operador (+, -, *, /)."),
                execution_time_ms=elapsed_ms(start),
            )
        except ExpressionError as e:
            decision_log.record("fallback_failed", str(e), level=logging.WARNING,
                                conversation_id=conversation_id, user_id=user_id,
                                execution_time_ms=elapsed_ms(start))
            return AgentResult(
                success=False,
                answer=f"Não foi possível calcular a expressão: {message}",
                execution_time_ms=elapsed_ms(start),
            )

        result = expression.evaluate()
        decision_log.record("fallback_answer", "MathAgent execution",
                            conversation_id=conversation_id, user_id=user_id,
                            execution_time_ms=elapsed_ms(start),
                            expression=str(expression), result=format_number(result))
        return AgentResult(
            success=True,
            answer=f"O resultado de {expression} é {format_number(result)}",
            execution_time_ms=elapsed_ms(start),
        )
