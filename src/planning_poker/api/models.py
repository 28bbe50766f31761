"""Pydantic request bodies for the HTTP transport."""

from pydantic import BaseModel, StrictFloat, StrictInt, StrictStr

from planning_poker.domain.models import EstimationScale

VoteInput = StrictInt | StrictFloat | StrictStr


class CreateSessionRequest(BaseModel):
    title: str
    facilitator_name: str
    scale: EstimationScale = EstimationScale.FIBONACCI


class JoinSessionRequest(BaseModel):
    session_code: str
    participant_name: str


class AddStoryRequest(BaseModel):
    title: str
    description: str | None = None


class SubmitVoteRequest(BaseModel):
    vote: VoteInput


class FinalizeEstimateRequest(BaseModel):
    estimate: VoteInput


class PresenceRequest(BaseModel):
    is_online: bool
