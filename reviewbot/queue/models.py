"""Data models for review queue jobs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from reviewbot.models.review import PRDetails


class ReviewJob(BaseModel):
    delivery_id: str
    provider: Literal["github", "gitea"]
    action: str
    owner: str
    repo: str
    number: int = Field(gt=0)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def pr_details(self) -> PRDetails:
        return PRDetails(owner=self.owner, repo=self.repo, number=self.number)
