"""Data models for packaging extraction requests and responses."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union


class PackagingLevel(Enum):
    """Packaging level an order quantity is expressed in."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(frozen=True)
class PrimaryPackaging:
    """Innermost packaging unit, e.g. a box of 12 pieces."""

    description: str
    quantity: float
    unit: str
    material: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PrimaryPackaging":
        return cls(
            description=str(data.get("description") or ""),
            quantity=float(data.get("quantity") or 0),
            unit=str(data.get("unit") or ""),
            material=data.get("material"),
        )


@dataclass(frozen=True)
class SecondaryPackaging:
    """Outer packaging holding several primary packages."""

    description: str
    quantity: float
    primary_packages_per_secondary: float
    material: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SecondaryPackaging":
        return cls(
            description=str(data.get("description") or ""),
            quantity=float(data.get("quantity") or 0),
            primary_packages_per_secondary=float(data.get("primaryPackagesPerSecondary") or 0),
            material=data.get("material"),
        )


@dataclass(frozen=True)
class PackagingData:
    """Packaging breakdown for one stock item."""

    total_primary_packages: float
    order_quantity: float
    order_packaging_level: PackagingLevel = PackagingLevel.PRIMARY
    primary: Optional[PrimaryPackaging] = None
    secondary: Optional[SecondaryPackaging] = None
    confidence: Optional[float] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PackagingData":
        primary = data.get("primaryPackaging")
        secondary = data.get("secondaryPackaging")
        try:
            level = PackagingLevel(data.get("orderPackagingLevel") or "primary")
        except ValueError:
            level = PackagingLevel.PRIMARY
        return cls(
            total_primary_packages=float(data.get("totalPrimaryPackages") or 0),
            order_quantity=float(data.get("orderQuantity") or 0),
            order_packaging_level=level,
            primary=PrimaryPackaging.from_dict(primary) if isinstance(primary, dict) else None,
            secondary=SecondaryPackaging.from_dict(secondary) if isinstance(secondary, dict) else None,
            confidence=data.get("confidence"),
            notes=data.get("notes"),
        )

    def with_primary_unit(self, unit: str) -> "PackagingData":
        """Copy with the primary packaging unit replaced."""
        if self.primary is None:
            primary = PrimaryPackaging(description="", quantity=0, unit=unit)
        else:
            primary = replace(self.primary, unit=unit)
        return replace(self, primary=primary)


@dataclass(frozen=True)
class UnitConfirmation:
    """Payload sent by the service when it is unsure about a unit."""

    extracted_unit: str
    question: str
    normalized_unit: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UnitConfirmation":
        return cls(
            extracted_unit=str(data.get("extractedUnit") or ""),
            question=str(
                data.get("question")
                or "The extracted unit was not recognized. Please confirm the correct unit of measurement."
            ),
            normalized_unit=data.get("normalizedUnit") or None,
        )


@dataclass
class ExtractionSuccess:
    """Well-formed success answer from the extraction service."""

    packaging: PackagingData
    request_id: Optional[str] = None
    duration_ms: Optional[float] = None
    timestamp: Optional[str] = None
    requires_confirmation: bool = False
    unit_confirmation: Optional[UnitConfirmation] = None

    @property
    def success(self) -> bool:
        return True


@dataclass
class ExtractionFailure:
    """Well-formed failure answer from the extraction service."""

    error: str
    message: Optional[str] = None
    request_id: Optional[str] = None
    rate_limit: bool = False
    current_usage: Optional[int] = None
    limit: Optional[int] = None
    status_code: Optional[int] = None
    raw_data: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def success(self) -> bool:
        return False

    @property
    def display_message(self) -> str:
        return self.error or self.message or "Packaging extraction unavailable. You can continue without it."


ExtractionResponse = Union[ExtractionSuccess, ExtractionFailure]


def parse_extraction_response(
    payload: Any, status_code: Optional[int] = None
) -> ExtractionResponse:
    """
    Turn a decoded JSON body into a success or failure response.

    Anything that is not an explicit success with packaging data is a failure.
    """
    if not isinstance(payload, dict):
        return ExtractionFailure(
            error="Malformed extraction response",
            status_code=status_code,
        )

    if payload.get("success") is True and isinstance(payload.get("packaging"), dict):
        metadata = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
        confirmation = payload.get("unitConfirmation")
        return ExtractionSuccess(
            packaging=PackagingData.from_dict(payload["packaging"]),
            request_id=metadata.get("requestId"),
            duration_ms=metadata.get("duration"),
            timestamp=metadata.get("timestamp"),
            requires_confirmation=bool(payload.get("requiresConfirmation")),
            unit_confirmation=(
                UnitConfirmation.from_dict(confirmation) if isinstance(confirmation, dict) else None
            ),
        )

    return ExtractionFailure(
        error=str(payload.get("error") or ""),
        message=payload.get("message"),
        request_id=payload.get("requestId"),
        rate_limit=payload.get("rateLimit") is True or status_code == 429,
        current_usage=payload.get("currentUsage"),
        limit=payload.get("limit"),
        status_code=status_code,
        raw_data=payload,
    )


def merge_local_edits(
    packaging: PackagingData,
    order_quantity: Optional[float] = None,
    primary: Optional[PrimaryPackaging] = None,
    secondary: Optional[SecondaryPackaging] = None,
    secondary_removed: bool = False,
) -> PackagingData:
    """
    Reapply operator edits on top of a fresh extraction result.

    Args:
        packaging: Packaging data as returned by the service
        order_quantity: Edited order quantity, if any
        primary: Edited primary packaging, if any
        secondary: Edited secondary packaging, if any
        secondary_removed: The operator deleted the secondary packaging

    Returns:
        Packaging data with edits applied and total_primary_packages recomputed
    """
    quantity = order_quantity if order_quantity is not None else packaging.order_quantity
    effective_primary = primary or packaging.primary
    if secondary_removed:
        effective_secondary = None
    else:
        effective_secondary = secondary if secondary is not None else packaging.secondary

    if packaging.order_packaging_level == PackagingLevel.PRIMARY:
        total = quantity
    elif effective_secondary is not None:
        total = effective_secondary.quantity * effective_secondary.primary_packages_per_secondary
    elif effective_primary is not None:
        total = quantity
    else:
        total = packaging.total_primary_packages

    level = PackagingLevel.PRIMARY if secondary_removed else packaging.order_packaging_level

    return replace(
        packaging,
        order_quantity=quantity,
        primary=effective_primary,
        secondary=effective_secondary,
        total_primary_packages=total,
        order_packaging_level=level,
    )
