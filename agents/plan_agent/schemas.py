from typing import Any, ClassVar, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class Step(BaseModel):
    """
    One unit of work within an execution plan.

    Attributes:
        description (str): Human readable summary of the step.
        urpc_code (str): Pseudo-code call, e.g.
            ``repo({entity: "user", source: "memory"}).findMany()``.
        order (int | float): 1-based execution order; may be non-contiguous
            or fractional.
    """
    description: str = ""
    urpc_code: str
    order: Union[int, float] = 0

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value):
        return "" if value is None else value


class ExecutionPlan(BaseModel):
    """Ordered steps needed to satisfy a request. ``total_steps`` is advisory."""
    steps: List[Step] = []
    total_steps: int = 0

    def sorted_steps(self) -> List[Step]:
        # sorted() is stable, ties keep their array position
        return sorted(self.steps, key=lambda s: s.order)


class StepOutput(BaseModel):
    """Result of executing a single step."""
    operation: str
    entity: str
    source: str
    data: Any = None
    message: str = ""
    success: bool
    urpc_code: Optional[str] = None

    model_config = {"frozen": True}


class PlanOutput(BaseModel):
    OPTIONAL_FIELDS: ClassVar[tuple] = ("message", "summary", "summaryText")

    execution_plan: ExecutionPlan = Field(default_factory=ExecutionPlan)
    results: List[StepOutput] = []
    message: Optional[str] = None
    summary: Optional[bool] = None
    summaryText: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize, omitting only the unset optional top-level fields."""
        unset = {name for name in self.OPTIONAL_FIELDS if getattr(self, name) is None}
        return self.model_dump(exclude=unset)


class DecodedCall(BaseModel):
    """Structured form of one pseudo-code string."""
    operation: str = "unknown"
    entity: str = "unknown"
    source: str
    options: Any = Field(default_factory=dict)
    method: Optional[str] = None
