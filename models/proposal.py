from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProposalStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"


class Proposal(BaseModel):
    """An addressed, single-recipient offer with a pending/accepted/declined lifecycle.

    Friend requests carry no payload; event proposals add `event_data`.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_user_id: str = Field(alias="fromUserId")
    to_user_id: str = Field(alias="toUserId")
    status: ProposalStatus = ProposalStatus.pending

    @field_validator("id", "from_user_id", "to_user_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        # Backends omit the status on freshly created requests
        if value is None or value == "":
            return ProposalStatus.pending
        if isinstance(value, str):
            value = value.lower()
            if value == "rejected":
                return ProposalStatus.declined
        return value

    @property
    def is_resolved(self) -> bool:
        return self.status != ProposalStatus.pending

    def other_party(self, user_id: str) -> str:
        return self.to_user_id if self.from_user_id == user_id else self.from_user_id
