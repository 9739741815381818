"""
Database Schemas

Vote/bet tracker schemas for MongoDB using Pydantic models.
Each document model represents a collection in your database.
Model name is converted to lowercase for the collection name.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

Player = Literal["player1", "player2"]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _clean_name(value: Any) -> Any:
    # numbers are accepted as names; everything else must already be a string
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
    return value


# ---------- Documents ----------
class Vote(BaseModel):
    """
    Collection: "vote"
    One vote per voter name (unique index on voterName)
    """
    voterName: str = Field(..., min_length=1, description="Trimmed voter name, unique")
    votedFor: Player = Field(..., description="player1 | player2")
    timestamp: datetime = Field(default_factory=now_utc, description="When the vote was cast")

    strip_name = field_validator("voterName", mode="before")(_clean_name)


class Bet(BaseModel):
    """
    Collection: "bet"
    One bet per better name (unique index on betterName)
    """
    betterName: str = Field(..., min_length=1, description="Trimmed better name, unique")
    amount: float = Field(..., ge=0, description="Recorded amount, no settlement")
    betOn: Player = Field(..., description="player1 | player2")
    timestamp: datetime = Field(default_factory=now_utc, description="When the bet was placed")

    strip_name = field_validator("betterName", mode="before")(_clean_name)


# ---------- Requests ----------
class VoteRequest(BaseModel):
    voterName: str = Field(..., min_length=1)
    votedFor: Player

    strip_name = field_validator("voterName", mode="before")(_clean_name)


class BetRequest(BaseModel):
    betterName: str = Field(..., min_length=1)
    betOn: Player
    amount: float = Field(..., gt=0, allow_inf_nan=False)

    strip_name = field_validator("betterName", mode="before")(_clean_name)

    @field_validator("amount", mode="before")
    @classmethod
    def reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("amount must be a number")
        return value
