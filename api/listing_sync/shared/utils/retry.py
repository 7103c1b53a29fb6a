"""
Política de reintentos con backoff exponencial.

- El número de intentos es explícito y observable (attempts en el resultado).
- 429: respeta Retry-After si el servidor lo envía.
- El resto: exponencial acotado con jitter proporcional fijo.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_BACKOFF_S = 0.8
DEFAULT_MAX_BACKOFF_S = 20.0
JITTER_RATIO = 0.15


@dataclass(frozen=True)
class RetryPolicy:
    """Configuración de reintentos para llamadas de red."""

    max_retries: int = DEFAULT_MAX_RETRIES
    min_backoff_s: float = DEFAULT_MIN_BACKOFF_S
    max_backoff_s: float = DEFAULT_MAX_BACKOFF_S

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff_seconds(self, attempt: int, retry_after: Optional[str] = None) -> float:
        """
        Segundos a esperar antes del siguiente intento.

        Args:
            attempt: Intento que acaba de fallar (0-based)
            retry_after: Valor crudo del header Retry-After, si existe
        """
        if retry_after:
            try:
                return min(self.max_backoff_s, max(0.0, float(retry_after)))
            except ValueError:
                return self.min_backoff_s
        base = min(self.max_backoff_s, self.min_backoff_s * (2 ** attempt))
        return base + (JITTER_RATIO * base)


@dataclass
class RetryStats:
    """Contadores de intentos acumulados por un cliente."""

    requests: int = 0
    attempts: int = 0
    retries: int = 0
    last_attempts: int = 0

    def record(self, attempts: int) -> None:
        self.requests += 1
        self.attempts += attempts
        self.retries += max(0, attempts - 1)
        self.last_attempts = attempts
