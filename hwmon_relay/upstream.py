from __future__ import annotations

import base64
from http.client import HTTPException
import json
import logging
from typing import Any
from urllib.request import Request, urlopen

from hwmon_relay.config import UpstreamConfig
from hwmon_relay.errors import UpstreamShapeInvalid, UpstreamUnavailable
from hwmon_relay.logging_utils import TRACE_LEVEL
from hwmon_relay.tree import SensorNode


def system_root(raw: Any) -> SensorNode:
    """Return the system node of a decoded monitor payload.

    The only structural requirement is a root object whose ``Children`` is a
    non-empty list starting with an object.
    """
    if not isinstance(raw, dict):
        raise UpstreamShapeInvalid("Monitor payload is not a JSON object.")
    children = raw.get("Children")
    if not isinstance(children, list) or not children:
        raise UpstreamShapeInvalid("Monitor payload has no Children.")
    if not isinstance(children[0], dict):
        raise UpstreamShapeInvalid("Monitor system root is not an object.")
    return SensorNode.from_json(children[0])


class UpstreamClient:
    def __init__(self, config: UpstreamConfig) -> None:
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

    def _request(self) -> Request:
        request = Request(self.config.url, headers={"Accept": "application/json"})
        if self.config.username:
            token = f"{self.config.username}:{self.config.password or ''}".encode("utf-8")
            request.add_header("Authorization", "Basic " + base64.b64encode(token).decode("ascii"))
        return request

    def fetch_raw(self) -> Any:
        self.logger.debug("Fetching sensor tree from %s", self.config.url)
        try:
            with urlopen(self._request(), timeout=self.config.timeout_s) as response:
                payload = response.read().decode("utf-8")
        except (OSError, ValueError, HTTPException) as exc:
            raise UpstreamUnavailable(f"Failed to fetch {self.config.url}: {exc}") from exc
        if self.logger.isEnabledFor(TRACE_LEVEL):
            self.logger.log(TRACE_LEVEL, "Monitor raw payload: %s", payload)
        try:
            return json.loads(payload)
        except json.JSONDecodeError as exc:
            raise UpstreamUnavailable(f"Monitor returned invalid JSON: {exc}") from exc

    def fetch(self) -> SensorNode:
        return system_root(self.fetch_raw())
