"""app.bsky.video: upload quotas and processing jobs."""

from typing import Optional

from pydantic import model_validator

from social.graze.atkit.lexicon.repo import Blob
from social.graze.atkit.lexicon.union import LexiconModel

JOB_STATE_COMPLETED = "JOB_STATE_COMPLETED"
JOB_STATE_FAILED = "JOB_STATE_FAILED"


class JobStatus(LexiconModel):
    job_id: str
    did: str
    state: str
    progress: Optional[int] = None
    blob: Optional[Blob] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def unwrap_job_status(cls, data):
        # uploadVideo answers with the bare job status, getJobStatus wraps it.
        if isinstance(data, dict) and isinstance(data.get("jobStatus"), dict):
            return data["jobStatus"]
        return data

    @property
    def finished(self) -> bool:
        return self.state in (JOB_STATE_COMPLETED, JOB_STATE_FAILED)


class GetUploadLimitsOutput(LexiconModel):
    can_upload: bool
    remaining_daily_videos: Optional[int] = None
    remaining_daily_bytes: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None
