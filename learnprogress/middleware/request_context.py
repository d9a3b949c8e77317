"""Request context middleware: request IDs, learner binding, access logs.

Every request gets an ID, taken from the X-Request-ID header when the
caller sends one and generated otherwise.  Requests under
/v1/learners/{learner_id}/ also bind the learner id.  Both live in the
ContextVars from core/logging.py, so each concurrent request (an asyncio
task) sees its own values and every record it logs is stamped with them:

  INFO  learnprogress.services.progress_recorder  Recorded progress ...  request_id=abc learner_id=6f1c...
  INFO  learnprogress.services.achievements  Awarded achievement ...  request_id=abc learner_id=6f1c...
  INFO  learnprogress.middleware.request_context  POST /v1/learners/... -> 200 (12.4ms)  request_id=abc ...

The request ID is echoed back in the X-Request-ID response header.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from learnprogress.core.logging import learner_id_var, request_id_var

logger = logging.getLogger(__name__)

_LEARNER_PATH = re.compile(r"^/v1/learners/(?P<learner_id>[^/]+)/")


def learner_id_from_path(path: str) -> str | None:
    match = _LEARNER_PATH.match(path)
    return match.group("learner_id") if match else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_token = request_id_var.set(req_id)
        learner_token = learner_id_var.set(learner_id_from_path(request.url.path))
        start = time.monotonic()
        try:
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)
            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        finally:
            learner_id_var.reset(learner_token)
            request_id_var.reset(request_token)

        response.headers["X-Request-ID"] = req_id
        return response
