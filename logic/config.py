# logic/config.py

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class EvaluatorConfig:
    """
    Knobs shared by every rule of a monitor.

    retention_limit: maximum rows a single window store may retain before
      dropping its oldest entries (None = unlimited).
    strict_signature: reject facts of undeclared relations with TypeMismatch;
      when False such facts are ignored.
    size_warnings: log a warning the first time a store degrades.
    """
    retention_limit: Optional[int] = None
    strict_signature: bool = True
    size_warnings: bool = True

    def __post_init__(self):
        if self.retention_limit is not None and self.retention_limit < 1:
            raise ValueError(f"retention_limit must be positive, got {self.retention_limit}")
