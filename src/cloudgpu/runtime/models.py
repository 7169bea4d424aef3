"""Runtime acquisition domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Variant(str, Enum):
    GPU = "GPU"
    TPU = "TPU"
    DEFAULT = "DEFAULT"

    @classmethod
    def from_name(cls, name: str) -> Variant:
        normalized = name.strip().upper()
        if normalized == "CPU":
            return cls.DEFAULT
        return cls(normalized)


class RuntimeState(str, Enum):
    PENDING = "PENDING"
    QUEUED = "QUEUED"
    PROVISIONING = "PROVISIONING"
    READY = "READY"
    FAILED = "FAILED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: object) -> RuntimeState:
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return cls.UNKNOWN
        return cls.UNKNOWN


@dataclass(frozen=True)
class ProxyEndpoint:
    url: str
    token: str


@dataclass(frozen=True)
class RuntimeStatus:
    runtime_id: str
    label: str
    variant: Variant
    state: RuntimeState
    proxy: ProxyEndpoint | None = None
    message: str = ""

    @property
    def is_connectable(self) -> bool:
        return (
            self.state == RuntimeState.READY
            and self.proxy is not None
            and bool(self.proxy.url.strip())
        )

    def assigned(self) -> AssignedRuntime | None:
        if not self.is_connectable or self.proxy is None:
            return None
        return AssignedRuntime(
            runtime_id=self.runtime_id,
            label=self.label,
            variant=self.variant,
            proxy=self.proxy,
        )


@dataclass(frozen=True)
class AssignedRuntime:
    runtime_id: str
    label: str
    variant: Variant
    proxy: ProxyEndpoint


@dataclass(frozen=True)
class AssignOptions:
    force_new: bool = False
    variant: Variant = Variant.GPU
    quiet: bool = False
