# repotransfer/core/interfaces/types.py
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

class Phase(Enum):
    """The three sequential stages of transferring one repository"""
    PHASE1 = 1  # Full scan and transfer
    PHASE2 = 2  # Delta transfer of files created or modified since phase 1 began
    PHASE3 = 3  # Retry of phase 1/3 failures

    @property
    def label(self) -> str:
        return _PHASE_LABELS[self]

    @property
    def has_totals(self) -> bool:
        """Phase 2 cannot know its total in advance"""
        return self is not Phase.PHASE2

    def next(self) -> Optional["Phase"]:
        if self is Phase.PHASE3:
            return None
        return Phase(self.value + 1)

_PHASE_LABELS = {
    Phase.PHASE1: "Transferring all files in the repository (1/3)",
    Phase.PHASE2: "Transferring newly created and modified files (2/3)",
    Phase.PHASE3: "Retrying transfer failures (3/3)",
}

class ProgressCounters(BaseModel):
    transferred_units: int = 0
    total_units: int = 0
    transferred_size_bytes: int = 0
    total_size_bytes: int = 0

class RepoProgress(BaseModel):
    """Per-phase progress of the repository currently being transferred"""
    name: str
    phase1_info: ProgressCounters = Field(default_factory=ProgressCounters)
    phase2_info: ProgressCounters = Field(default_factory=ProgressCounters)
    phase3_info: ProgressCounters = Field(default_factory=ProgressCounters)

    def info_for(self, phase: Phase) -> ProgressCounters:
        return {
            Phase.PHASE1: self.phase1_info,
            Phase.PHASE2: self.phase2_info,
            Phase.PHASE3: self.phase3_info,
        }[phase]
