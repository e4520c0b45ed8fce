"""
Agent Models - Triage and specialist agent profiles.
"""

from typing import Annotated, Literal, Union
from pydantic import BaseModel, ConfigDict, Field


class AgentProfile(BaseModel):
    """Identity and persona shared by every agent."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    role: str
    description: str
    persona: str = ""  # only read by the backend collaborator

    @property
    def is_triage(self) -> bool:
        return False


class TriageAgent(AgentProfile):
    """The entry-point agent that routes users to specialists."""
    kind: Literal["triage"] = "triage"

    @property
    def is_triage(self) -> bool:
        return True


class SpecialistAgent(AgentProfile):
    """A domain expert the triage agent can hand off to."""
    kind: Literal["specialist"] = "specialist"


Agent = Annotated[Union[TriageAgent, SpecialistAgent], Field(discriminator="kind")]
