from abc import ABC, abstractmethod
from typing import Any, Dict


class Agent(ABC):
    """Common shape of the planning and summary agents."""

    name: str = "agent"

    @abstractmethod
    def run(self, payload: Any, context: Dict[str, Any]):
        """Handle ``payload`` (request text or step results) with ``context`` options."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
