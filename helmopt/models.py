"""Shared Pydantic models for helm-optimize.

Adapters, the resolver and the approval tracker all import from here to keep
RecommendationKey, ResourceSpec and the approval vocabulary in one place.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from helmopt.errors import SpecValidationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ApprovalState(str, Enum):
    """Backend-held approval of a recommendation."""
    approved = "Approved"
    not_approved = "Not Approved"


class AdapterKind(str, Enum):
    """Available backend integrations, in menu order."""
    densify = "Densify"
    parameter_store = "Parameter Store"


class ResolutionSource(str, Enum):
    """Where a container's resources came from."""
    backend = "backend"
    cluster = "cluster"
    chart_default = "chart-default"
    none = "none"


# ---------------------------------------------------------------------------
# Keys & specs
# ---------------------------------------------------------------------------

class RecommendationKey(BaseModel):
    """Addresses exactly one container's recommendation."""
    model_config = ConfigDict(frozen=True)

    cluster: str
    namespace: str
    object_type: str
    object_name: str
    container_name: str

    def __str__(self) -> str:
        return (
            f"{self.cluster}/{self.namespace}/{self.object_type}/"
            f"{self.object_name}/{self.container_name}"
        )


def _quantity(value: float, suffix: str) -> str:
    # positional notation only, "1e-05" is not a valid quantity
    return f"{Decimal(repr(float(value))).normalize():f}{suffix}"


def _is_positive(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value > 0


class ResourceSpec(BaseModel):
    """Limits and requests for one container, in millicores and MiB."""
    model_config = ConfigDict(frozen=True)

    cpu_limit: float = Field(..., gt=0)
    memory_limit: float = Field(..., gt=0)
    cpu_request: float = Field(..., gt=0)
    memory_request: float = Field(..., gt=0)

    @classmethod
    def from_values(
        cls,
        cpu_limit: Any,
        memory_limit: Any,
        cpu_request: Any,
        memory_request: Any,
    ) -> ResourceSpec:
        """Build a spec, raising :class:`SpecValidationError` unless all four
        values are present and strictly positive."""
        values = {
            "cpu_limit": cpu_limit,
            "memory_limit": memory_limit,
            "cpu_request": cpu_request,
            "memory_request": memory_request,
        }
        invalid = sorted(name for name, value in values.items() if not _is_positive(value))
        if invalid:
            raise SpecValidationError(
                f"invalid resource specs received from repository: {', '.join(invalid)}"
            )
        return cls(**values)

    def to_resources(self) -> dict[str, dict[str, str]]:
        """Render the ``resources`` block written into a container."""
        return {
            "limits": {
                "cpu": _quantity(self.cpu_limit, "m"),
                "memory": _quantity(self.memory_limit, "Mi"),
            },
            "requests": {
                "cpu": _quantity(self.cpu_request, "m"),
                "memory": _quantity(self.memory_request, "Mi"),
            },
        }


# ---------------------------------------------------------------------------
# Densify insight record
# ---------------------------------------------------------------------------

class Insight(BaseModel):
    """One container recommendation as returned by the Densify analysis API."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    entity_id: str = Field(default="", alias="entityId")
    cluster: str = ""
    namespace: str = ""
    controller_type: str = Field(default="", alias="controllerType")
    pod_service: str = Field(default="", alias="podService")
    container: str = ""

    current_cpu_limit: Optional[float] = Field(default=None, alias="currentCpuLimit")
    current_mem_limit: Optional[float] = Field(default=None, alias="currentMemLimit")
    current_cpu_request: Optional[float] = Field(default=None, alias="currentCpuRequest")
    current_mem_request: Optional[float] = Field(default=None, alias="currentMemRequest")

    recommended_cpu_limit: Optional[float] = Field(default=None, alias="recommendedCpuLimit")
    recommended_mem_limit: Optional[float] = Field(default=None, alias="recommendedMemLimit")
    recommended_cpu_request: Optional[float] = Field(default=None, alias="recommendedCpuRequest")
    recommended_mem_request: Optional[float] = Field(default=None, alias="recommendedMemRequest")

    def matches(self, key: RecommendationKey) -> bool:
        return (
            self.cluster == key.cluster
            and self.namespace == key.namespace
            and self.controller_type == key.object_type
            and self.pod_service == key.object_name
            and self.container == key.container_name
        )

    def recommended_spec(self) -> ResourceSpec:
        return ResourceSpec.from_values(
            self.recommended_cpu_limit,
            self.recommended_mem_limit,
            self.recommended_cpu_request,
            self.recommended_mem_request,
        )

    def current_spec(self) -> ResourceSpec:
        return ResourceSpec.from_values(
            self.current_cpu_limit,
            self.current_mem_limit,
            self.current_cpu_request,
            self.current_mem_request,
        )


# ---------------------------------------------------------------------------
# Resolution outcome
# ---------------------------------------------------------------------------

class Resolution(BaseModel):
    """What the fallback chain decided for a single container."""
    key: RecommendationKey
    source: ResolutionSource = ResolutionSource.none
    resources: Optional[dict[str, Any]] = None
    approval: Optional[ApprovalState] = None
    failures: list[str] = Field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.source is not ResolutionSource.none
