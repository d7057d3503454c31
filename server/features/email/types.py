from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SenderIdentity:
    from_email: str
    from_name: str

    @property
    def formatted(self) -> str:
        return f"{self.from_name} <{self.from_email}>"


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html_body: str
    text_body: str | None = None


@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class BulkSendResult:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    sent_to: list[str] = field(default_factory=list)
