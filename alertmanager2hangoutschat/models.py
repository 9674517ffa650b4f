"""
Alertmanager webhook payload and the models derived from it.

Field names follow the Alertmanager template data (``Status``, ``Alerts``,
``Labels``, ``GeneratorURL`` ...) so templates written against Alertmanager
read the same here. JSON keys are the webhook's camelCase keys.
"""

from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from werkzeug.datastructures import ImmutableMultiDict

from alertmanager2hangoutschat.errors import DecodeError

FIRING = "firing"
RESOLVED = "resolved"


class Pair(NamedTuple):
    Name: str
    Value: str


class KV(dict):
    """Label or annotation set with the Alertmanager KV helpers."""

    @property
    def SortedPairs(self) -> List[Pair]:
        return [Pair(name, self[name]) for name in sorted(self)]

    @property
    def Names(self) -> List[str]:
        return sorted(self)

    @property
    def Values(self) -> List[str]:
        return [self[name] for name in sorted(self)]

    def Remove(self, keys: Iterable[str]) -> "KV":
        drop = set(keys)
        return KV({k: v for k, v in self.items() if k not in drop})


class Alert(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_default=True)

    Status: str = Field("", alias="status")
    Labels: Optional[Dict[str, str]] = Field(None, alias="labels")
    Annotations: Optional[Dict[str, str]] = Field(None, alias="annotations")
    StartsAt: str = Field("", alias="startsAt")
    EndsAt: str = Field("", alias="endsAt")
    GeneratorURL: str = Field("", alias="generatorURL")
    Fingerprint: str = Field("", alias="fingerprint")

    @field_validator("Labels", "Annotations", mode="after")
    @classmethod
    def wrap_kv(cls, value: Optional[Dict[str, str]]) -> KV:
        return KV(value or {})


class AlertList(list):
    """Ordered alerts of one notification with firing/resolved views."""

    @property
    def Firing(self) -> "AlertList":
        return AlertList(a for a in self if a.Status == FIRING)

    @property
    def Resolved(self) -> "AlertList":
        return AlertList(a for a in self if a.Status == RESOLVED)


class AlertPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_default=True)

    Receiver: str = Field("", alias="receiver")
    Status: str = Field("", alias="status")
    Alerts: Optional[List[Alert]] = Field(None, alias="alerts")
    GroupLabels: Optional[Dict[str, str]] = Field(None, alias="groupLabels")
    CommonLabels: Optional[Dict[str, str]] = Field(None, alias="commonLabels")
    CommonAnnotations: Optional[Dict[str, str]] = Field(None, alias="commonAnnotations")
    ExternalURL: str = Field("", alias="externalURL")
    Version: str = Field("", alias="version")
    GroupKey: str = Field("", alias="groupKey")
    TruncatedAlerts: int = Field(0, alias="truncatedAlerts")

    @field_validator("Alerts", mode="after")
    @classmethod
    def wrap_alerts(cls, value: Optional[List[Alert]]) -> AlertList:
        return AlertList(value or [])

    @field_validator("GroupLabels", "CommonLabels", "CommonAnnotations", mode="after")
    @classmethod
    def wrap_kv(cls, value: Optional[Dict[str, str]]) -> KV:
        return KV(value or {})


class QueryValues(ImmutableMultiDict):
    """Query string of the inbound request, exposed to templates as ``QueryParams``."""

    def Get(self, key: str) -> str:
        return self.get(key, "")


class RenderModel(AlertPayload):
    """Root value handed to the template: the payload plus ``QueryParams``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    QueryParams: QueryValues = Field(default_factory=QueryValues)

    @classmethod
    def build(cls, payload: AlertPayload, query: Any) -> "RenderModel":
        return cls(**dict(payload), QueryParams=QueryValues(query))

    def context(self) -> Dict[str, Any]:
        return dict(self)


class ChatEnvelope(BaseModel):
    text: str

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")


def decode_payload(body: bytes) -> AlertPayload:
    """
    Decode an inbound webhook body.

    Raises:
        DecodeError: body is not JSON or does not match the payload schema
    """
    try:
        return AlertPayload.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(f"invalid alert payload: {e}") from e
