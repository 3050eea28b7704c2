"""
School Directory Backend: Abstract Description Generator
=========================================================

What:  The contract for services that write a School's marketing description.
Why:   The route depends on this interface, not on Gemini, so tests can swap
       in a stub and another provider can be added without touching routes.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping


class LLMService(ABC):
    """
    Abstract interface for AI-generated school descriptions.

    Contract:
        - generate_description() takes a School's fields and returns text
        - Implementations handle their own retries and error translation
        - Provider errors surface as LLMServiceError or CircuitBreakerOpenError
    """

    @abstractmethod
    async def generate_description(self, school: Mapping[str, Any]) -> str:
        """
        Write a short description for a school.

        Args:
            school: Column values of a stored School (name, address, city,
                    state, contact, email_id, ...).

        Returns:
            The generated description, stripped. Never None.

        Raises:
            LLMServiceError: the provider failed after all retries.
            CircuitBreakerOpenError: too many recent failures.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check used by GET /health."""
        ...
