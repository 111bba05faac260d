"""
app.bsky.video

Videos are uploaded straight to the video service, authenticated with a service-auth token the
account's PDS signs for ``com.atproto.repo.uploadBlob``. The service transcodes the upload and
writes the resulting blob to the PDS; callers poll the job until it finishes.
"""

import asyncio
from datetime import datetime, timedelta, timezone
import logging
from typing import Optional

from ulid import ULID
from yarl import URL

from social.graze.atkit.api.server import ServerAPI
from social.graze.atkit.atproto.request import QueryItems
from social.graze.atkit.atproto.session import SessionManager
from social.graze.atkit.atproto.xrpc import (
    PROCEDURE,
    AuthMode,
    Endpoint,
    XRPCExecutor,
)
from social.graze.atkit.errors import (
    InvalidRequestURLError,
    MissingActiveSessionError,
    XRPCError,
)
from social.graze.atkit.lexicon.video import GetUploadLimitsOutput, JobStatus

logger = logging.getLogger(__name__)

VIDEO_SERVICE = "video"
VIDEO_SERVICE_DID = "did:web:video.bsky.app"
VIDEO_CONTENT_TYPE = "video/mp4"

UPLOAD_TOKEN_LIFETIME = timedelta(minutes=30)

GET_UPLOAD_LIMITS = Endpoint(
    "app.bsky.video.getUploadLimits",
    service=VIDEO_SERVICE,
    output=GetUploadLimitsOutput,
)
GET_JOB_STATUS = Endpoint(
    "app.bsky.video.getJobStatus",
    auth=AuthMode.NONE,
    service=VIDEO_SERVICE,
    output=JobStatus,
)
UPLOAD_VIDEO = Endpoint(
    "app.bsky.video.uploadVideo",
    method=PROCEDURE,
    service=VIDEO_SERVICE,
    output=JobStatus,
    idempotent=True,
)


class VideoAPI:
    def __init__(
        self, executor: XRPCExecutor, sessions: SessionManager, server: ServerAPI
    ) -> None:
        self.executor = executor
        self.sessions = sessions
        self.server = server

    async def _service_token(self, aud: str, lxm: str) -> str:
        exp = int((datetime.now(timezone.utc) + UPLOAD_TOKEN_LIFETIME).timestamp())
        output = await self.server.get_service_auth(aud, exp=exp, lxm=lxm)
        return output.token

    async def get_upload_limits(self) -> GetUploadLimitsOutput:
        token = await self._service_token(VIDEO_SERVICE_DID, GET_UPLOAD_LIMITS.nsid)
        return await self.executor.call(
            GET_UPLOAD_LIMITS, authorization=f"Bearer {token}"
        )

    async def get_job_status(self, job_id: str) -> JobStatus:
        return await self.executor.call(
            GET_JOB_STATUS, QueryItems().add("jobId", job_id)
        )

    async def upload_video(self, data: bytes, name: Optional[str] = None) -> JobStatus:
        """
        Upload an MP4 and return the processing job.

        A video the service has already processed for this account is answered with 409 and the
        existing job, which is returned as if the upload had just been accepted.
        """
        session = self.sessions.session
        if session is None:
            raise MissingActiveSessionError("No active session")

        pds_host = URL(session.service_endpoint).host
        if not pds_host:
            raise InvalidRequestURLError(
                f"Invalid service endpoint: {session.service_endpoint}"
            )

        token = await self._service_token(
            f"did:web:{pds_host}", "com.atproto.repo.uploadBlob"
        )
        params = (
            QueryItems().add("did", session.did).add("name", name or f"{ULID()}.mp4")
        )
        try:
            return await self.executor.call(
                UPLOAD_VIDEO,
                params,
                body=data,
                content_type=VIDEO_CONTENT_TYPE,
                authorization=f"Bearer {token}",
            )
        except XRPCError as e:
            job_id = e.body.get("jobId") if isinstance(e.body, dict) else None
            if e.status != 409 or not isinstance(job_id, str):
                raise
            logger.info(f"Video already uploaded as job {job_id}")
            return await self.get_job_status(job_id)

    async def wait_for_job(
        self,
        job_id: str,
        interval: float = 1.0,
        timeout: Optional[float] = 300.0,
    ) -> JobStatus:
        """
        Poll a job until it completes or fails.

        Raises:
            TimeoutError: The job did not finish within ``timeout`` seconds.
        """
        async with asyncio.timeout(timeout):
            while True:
                status = await self.get_job_status(job_id)
                if status.finished:
                    return status
                await asyncio.sleep(interval)
