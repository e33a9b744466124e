from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class ExecutionSuccess:
    cost: str = "0"
    transforms: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ExecutionFailure:
    error_message: str = ""
    cost: str = "0"


ExecutionResult = Union[ExecutionSuccess, ExecutionFailure]


def parse_execution_result(raw: Any) -> Optional[ExecutionResult]:
    """Map a node `{"Success": ...}` / `{"Failure": ...}` object to a variant, else None."""
    if not isinstance(raw, dict):
        return None
    if isinstance(raw.get("Success"), dict):
        success = raw["Success"]
        effect = success.get("effect") or {}
        return ExecutionSuccess(cost=str(success.get("cost", "0")), transforms=list(effect.get("transforms") or []))
    if isinstance(raw.get("Failure"), dict):
        failure = raw["Failure"]
        return ExecutionFailure(error_message=str(failure.get("error_message", "")), cost=str(failure.get("cost", "0")))
    return None
