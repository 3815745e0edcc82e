"""Decide whether the agent may act on a job without human review."""
from __future__ import annotations

from dataclasses import dataclass

from job_copilot.config import DEFAULT_AUTONOMOUS_THRESHOLD
from job_copilot.models import Job, UserProfile


@dataclass(frozen=True)
class AutonomyGate:
    default_threshold: int = DEFAULT_AUTONOMOUS_THRESHOLD

    def threshold_for(self, profile: UserProfile) -> int:
        # An explicit profile override replaces the default outright.
        if profile.minimum_fit_score is not None:
            return profile.minimum_fit_score
        return self.default_threshold

    def should_act_autonomously(self, job: Job, profile: UserProfile) -> bool:
        if not profile.autonomous_mode or job.fit_score is None:
            return False
        return job.fit_score >= self.threshold_for(profile)
