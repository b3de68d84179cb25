"""
Data schemas for the Play Timer service

Each Pydantic model maps to one record collection of the dataset. The
collection name used by the Mongo backend is the lowercased class name
(e.g., Child -> "child").
"""
from typing import List, Optional, Union
from pydantic import BaseModel, Field


def clean(value: Optional[str]) -> Optional[str]:
    """Trim a free-text field; blank values count as absent."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def display_name_for(name: str, nickname: Optional[str] = None) -> str:
    return clean(nickname) or name.strip()


def avatar_for(name: str) -> str:
    return name.strip()[:1].upper()


# Records
class Child(BaseModel):
    id: int
    name: str = Field(..., description="Child's trimmed name")
    nickname: Optional[str] = None
    displayName: str = Field(..., description="Nickname if given, else name")
    avatar: str = Field(..., description="Uppercased initial")
    fatherName: Optional[str] = None
    motherName: Optional[str] = None
    createdAt: str
    # Derived from completed sessions whenever children are read
    totalSessions: int = Field(0, ge=0)
    totalTimePlayed: Union[int, float] = Field(0, ge=0, description="Minutes")


class Game(BaseModel):
    id: int
    name: str


class Session(BaseModel):
    id: int
    childId: int
    gameId: int
    start: int = Field(..., description="Epoch milliseconds")
    end: Optional[int] = Field(None, description="Epoch milliseconds, unset while active")
    duration: Union[int, float] = Field(..., description="Minutes")

    @property
    def active(self) -> bool:
        return self.end is None


# Aggregate read from and written back to the store
class Dataset(BaseModel):
    children: List[Child] = Field(default_factory=list)
    games: List[Game] = Field(default_factory=list)
    sessions: List[Session] = Field(default_factory=list)
    nextChildId: int = Field(1, ge=1)
    nextGameId: int = Field(1, ge=1)
    nextSessionId: int = Field(1, ge=1)

    def find_child(self, child_id) -> Optional[Child]:
        return next((c for c in self.children if c.id == child_id), None)

    def find_game(self, game_id) -> Optional[Game]:
        return next((g for g in self.games if g.id == game_id), None)

    def find_session(self, session_id) -> Optional[Session]:
        return next((s for s in self.sessions if s.id == session_id), None)
