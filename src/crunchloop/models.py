#!/usr/bin/env python3
"""
Pydantic models for Crunchloop API resources and request payloads.
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crunchloop.errors import ImmutableFieldError

MEBIBYTE = 1024 * 1024
GIBIBYTE = 1024 * MEBIBYTE

# Fields fixed at creation time. Changing any of them means destroy + recreate.
IMMUTABLE_FIELDS = frozenset(
    {
        "name",
        "vmi_id",
        "host_id",
        "root_volume_size_gigabytes",
        "user_data",
        "ssh_key",
    }
)
MUTABLE_FIELDS = frozenset({"memory_megabytes", "cores"})


def bytes_to_megabytes(value: int) -> int:
    return value // MEBIBYTE


def bytes_to_gigabytes(value: int) -> int:
    return value // GIBIBYTE


class Host(BaseModel):
    """Physical host that VMs are scheduled on."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    status: Optional[str] = None


class Vmi(BaseModel):
    """Virtual machine image."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str


class RootVolume(BaseModel):
    model_config = ConfigDict(extra="ignore")

    size_bytes: int = 0


class VirtualMachine(BaseModel):
    """Point-in-time snapshot of a VM as reported by the API."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int
    name: str
    status: str
    memory_bytes: int = 0
    cores: int = 0
    provider: Optional[str] = None
    host: Optional[Host] = None
    vmi: Optional[Vmi] = None
    root_volume: RootVolume = Field(default_factory=RootVolume)

    @property
    def memory_megabytes(self) -> int:
        return bytes_to_megabytes(self.memory_bytes)

    @property
    def root_volume_size_gigabytes(self) -> int:
        return bytes_to_gigabytes(self.root_volume.size_bytes)

    def summary(self) -> Dict[str, Any]:
        """Flatten into the units used by request payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "memory_megabytes": self.memory_megabytes,
            "cores": self.cores,
            "vmi_id": self.vmi.id if self.vmi else None,
            "vmi": self.vmi.name if self.vmi else None,
            "host_id": self.host.id if self.host else None,
            "host": self.host.name if self.host else None,
            "root_volume_size_gigabytes": self.root_volume_size_gigabytes,
        }


class HostList(BaseModel):
    data: List[Host] = Field(default_factory=list)


class VmiList(BaseModel):
    data: List[Vmi] = Field(default_factory=list)


class CreateVmRequest(BaseModel):
    """Body of ``POST /api/v1/vms``."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(description="VM name")
    memory_megabytes: int = Field(ge=1, description="Memory (MiB)")
    cores: int = Field(ge=1, description="Virtual CPU cores")
    vmi_id: int = Field(description="Image to boot from")
    host_id: Optional[int] = Field(default=None, description="Host to place the VM on")
    root_volume_size_gigabytes: int = Field(ge=1, description="Root volume size (GiB)")
    user_data: Optional[str] = Field(
        default=None, description="Cloud-init user data, base64 encoded"
    )
    ssh_key: Optional[str] = Field(default=None, description="SSH public key")

    @field_validator("name")
    @classmethod
    def name_must_be_valid(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("VM name cannot be empty")
        return v.strip()

    @field_validator("user_data", "ssh_key")
    @classmethod
    def empty_means_unset(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class UpdateVmRequest(BaseModel):
    """Body of ``PATCH /api/v1/vms/{id}``. Only mutable fields are accepted."""

    model_config = ConfigDict(extra="forbid")

    memory_megabytes: Optional[int] = Field(default=None, ge=1)
    cores: Optional[int] = Field(default=None, ge=1)

    @classmethod
    def from_changes(cls, changes: Mapping[str, Any]) -> "UpdateVmRequest":
        """Build an update from a mapping, refusing creation-only fields."""
        immutable = IMMUTABLE_FIELDS.intersection(changes)
        if immutable:
            raise ImmutableFieldError(immutable)
        return cls.model_validate(dict(changes))

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def changes_against(self, vm: VirtualMachine) -> Dict[str, Any]:
        """Fields of this update whose value differs from ``vm``."""
        current = {"memory_megabytes": vm.memory_megabytes, "cores": vm.cores}
        return {k: v for k, v in self.to_payload().items() if current.get(k) != v}
