"""
Short code generation for URL shortener.
Uses Strategy Pattern so tests (or a future scheme) can swap the generator.
"""

import string
import random
from abc import ABC, abstractmethod
from typing import Iterator


# 26 upper + 26 lower + 10 digits. Part of the observable code shape.
ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self, length: int) -> str:
        """
        Generate a candidate short code.

        Args:
            length: Number of characters in the code

        Returns:
            A candidate code. Uniqueness is NOT guaranteed here; the store's
            unique constraint decides.
        """
        pass


class RandomShortCodeStrategy(ShortCodeStrategy):
    """
    Independent uniform draws from the 62-character alphabet.

    Not cryptographically secure: collision handling relies on the store,
    not on the generator's entropy.
    """

    def __init__(self, rng: random.Random = None):
        self.rng = rng or random.Random()
        self.characters = ALPHABET

    def generate(self, length: int) -> str:
        if length < 1:
            raise ValueError(f"Short code length must be positive, got {length}")
        return ''.join(self.rng.choice(self.characters) for _ in range(length))


class ShortCodeAttemptPlan:
    """
    Bounded sequence of code lengths to try.

    Attempt 1 uses the default length; every later attempt uses the
    escalated length. Iteration stops after max_attempts.

        >>> list(ShortCodeAttemptPlan(6, 8, 3))
        [6, 8, 8]
    """

    def __init__(self, default_length: int = 6, escalated_length: int = 8, max_attempts: int = 3):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.default_length = default_length
        self.escalated_length = escalated_length
        self.max_attempts = max_attempts

    def __iter__(self) -> Iterator[int]:
        for attempt in range(self.max_attempts):
            yield self.default_length if attempt == 0 else self.escalated_length

    def __len__(self) -> int:
        return self.max_attempts
