"""
Pydantic data models for the ingester.

InboundMessage is what the transport hands to the supervisor; MessageRecord is
the row the store writes.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def payload_to_text(payload: Optional[bytes]) -> str:
    """Convert a raw payload to the TEXT column value.

    Stops at the first NUL byte, as the payload is stored as a terminated
    string. Invalid UTF-8 is replaced rather than rejected. Binary payloads
    are not preserved byte-for-byte.
    """
    if not payload:
        return ""
    data = bytes(payload)
    cut = data.find(b"\x00")
    if cut >= 0:
        data = data[:cut]
    return data.decode("utf-8", errors="replace")


class InboundMessage(BaseModel):
    """One message as delivered by the broker transport."""

    model_config = ConfigDict(frozen=True)

    topic: str = Field(min_length=1)
    payload: bytes = b""
    qos: int = Field(default=0, ge=0, le=2)
    retain: bool = False

    @field_validator("payload", mode="before")
    @classmethod
    def _none_payload(cls, v):
        return b"" if v is None else v

    @property
    def payload_text(self) -> str:
        return payload_to_text(self.payload)


class MessageRecord(BaseModel):
    """A persisted row of the messages table."""

    id: Optional[int] = None
    ts: int
    topic: str = Field(min_length=1)
    payload: str = ""
    qos: int = Field(ge=0, le=2)
    retain: bool = False

    @classmethod
    def from_row(cls, row) -> "MessageRecord":
        """Build from a (id, ts, topic, payload, qos, retain) row."""
        id_, ts, topic, payload, qos, retain = row
        return cls(id=id_, ts=ts, topic=topic, payload=payload, qos=qos, retain=bool(retain))

    def insert_params(self) -> tuple:
        return (self.ts, self.topic, self.payload, self.qos, int(self.retain))
