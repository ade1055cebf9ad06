"""Friendly prefixes added to agent answers."""

import random
from typing import Optional, Sequence

DEFAULT_PHRASES = (
    "Com prazer! ",
    "Ótima pergunta! ",
    "Vamos lá! ",
    "Aqui está: ",
    "Descobri para você: ",
)


class PersonalityDecorator:
    """Prefixes text with one phrase drawn from a seedable random source."""

    def __init__(self, phrases: Sequence[str] = DEFAULT_PHRASES,
                 rng: Optional[random.Random] = None,
                 seed: Optional[int] = None):
        self.phrases = tuple(phrases)
        self.rng = rng or random.Random(seed)

    def decorate(self, text: str) -> str:
        if not self.phrases:
            return text
        return self.rng.choice(self.phrases) + text
