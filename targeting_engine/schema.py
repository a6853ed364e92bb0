"""Request, response and campaign data types."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

ACTIVE = "ACTIVE"
INACTIVE = "INACTIVE"


class ValidationError(ValueError):
    """A delivery request lacks required parameters."""


@dataclass(frozen=True)
class DeliveryRequest:
    """An incoming request from an end-user's app."""

    app_id: str = ""
    country: str = ""
    os: str = ""

    @classmethod
    def from_query(cls, query: Mapping[str, Any]) -> DeliveryRequest:
        """Read the app, country and os query parameters."""
        return cls(
            app_id=query.get("app") or "",
            country=query.get("country") or "",
            os=query.get("os") or "",
        )

    def validate(self) -> None:
        """Raise ValidationError unless every field is present."""
        if not (self.app_id and self.os and self.country):
            raise ValidationError("missing one or more required parameters: app, os, country")


@dataclass(frozen=True)
class CampaignResponse:
    """Campaign details sent back to the client."""

    cid: str
    img: str
    cta: str

    def to_dict(self) -> dict[str, str]:
        return {"cid": self.cid, "img": self.img, "cta": self.cta}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CampaignResponse:
        """Build from a JSON object; missing keys become empty strings."""
        if not isinstance(data, Mapping):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        values = {}
        for key in ("cid", "img", "cta"):
            value = data.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ValueError(f"field {key!r} must be a string")
            values[key] = value
        return cls(**values)


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _jsonable(item) for key, item in value.items()}
    return value


@dataclass
class ResponseEntity:
    """Envelope for every API response; empty fields are left out."""

    error: str = ""
    data: Any = None
    success: bool = False

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if self.error:
            body["error"] = self.error
        if self.data is not None:
            body["data"] = _jsonable(self.data)
        if self.success:
            body["success"] = True
        return body


@dataclass(frozen=True)
class Campaign:
    """An advertisement campaign."""

    id: str
    name: str
    image_url: str
    cta: str
    status: str = ACTIVE


def _frozen(values: Iterable[str]) -> frozenset[str]:
    return values if isinstance(values, frozenset) else frozenset(values)


@dataclass(frozen=True)
class TargetingRule:
    """Conditions under which a campaign may be served."""

    campaign_id: str
    include_country: frozenset[str] = field(default_factory=frozenset)
    exclude_country: frozenset[str] = field(default_factory=frozenset)
    include_os: frozenset[str] = field(default_factory=frozenset)
    exclude_os: frozenset[str] = field(default_factory=frozenset)
    include_app: frozenset[str] = field(default_factory=frozenset)
    exclude_app: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for name in (
            "include_country",
            "exclude_country",
            "include_os",
            "exclude_os",
            "include_app",
            "exclude_app",
        ):
            object.__setattr__(self, name, _frozen(getattr(self, name)))