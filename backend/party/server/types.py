from pydantic import BaseModel, ConfigDict, Field

from party.logic.enums import TurnActionType, Variant


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    variant: Variant
    capacity: int = Field(ge=1, le=100, strict=True)
    team_size: int | None = Field(default=None, ge=1)
    redraw_on_miss: bool = False
    guess_seconds: float | None = Field(default=None, gt=0, le=120)


class ClaimSeatRequest(BaseModel):
    """Seat claim from a device. seat is the index the device already holds, if any."""

    model_config = ConfigDict(extra="forbid")

    seat: int | None = Field(default=None, ge=0)
    host: bool = False


class ActionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: TurnActionType
    seat: int | None = Field(default=None, ge=0)
    expected_version: int | None = Field(default=None, ge=0)


class NewRoundRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    expected_version: int | None = Field(default=None, ge=0)
