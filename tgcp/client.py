"""Resolve, authenticate and send one API call."""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

from tgcp.auth import Credentials
from tgcp.dispatch import resolve
from tgcp.models import Scope
from tgcp.transport import Transport, TransportError

logger = logging.getLogger(__name__)


class CloudClient:
    def __init__(self, transport: Transport, credentials: Credentials):
        self.transport = transport
        self.credentials = credentials
        self._lock = threading.Lock()
        self._project: Optional[str] = None

    def call(self, service: str, method: str, params: Optional[Mapping[str, Any]], scope: Scope) -> Any:
        # Resolution happens before token acquisition so unknown methods
        # never trigger a gcloud subprocess.
        spec = resolve(service, method, params, scope)
        self._note_project(scope.project)
        token = self.credentials.get_token()
        try:
            response = self.transport.send(spec, token)
        except TransportError as exc:
            if exc.status_code == 401:
                logger.info("access token rejected; fetching a new one on the next call")
                self.credentials.invalidate()
            raise
        if spec.transform is not None:
            response = spec.transform(response if response is not None else {})
        return response

    def _note_project(self, project: Optional[str]) -> None:
        """Drop the cached token when calls move to another project."""
        if not project:
            return
        with self._lock:
            previous, self._project = self._project, project
        if previous is not None and previous != project:
            logger.info("project changed to %s; refreshing access token", project)
            self.credentials.invalidate()

    def close(self) -> None:
        self.transport.close()
