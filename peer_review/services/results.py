"""
Result types shared by the batch services.
"""
from dataclasses import dataclass, field
from typing import List


@dataclass
class BatchResult:
    """Processed-row count plus per-row errors from one batch run"""
    count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, message: str) -> None:
        self.errors.append(message)
