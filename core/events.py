"""
Consumer for the node's server-sent event stream.

Frames are read with sseclient-py and payloads are keyed by pycspr's
`NodeEventType` names, then classified into a closed set of envelopes.
Successful DeployProcessed envelopes are handed to a handler together with
their transforms; decoding contract-emitted events out of those transforms
depends on the contract's event encoding and is left to the handler.
"""
import json
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import requests
import sseclient
import structlog
from pycspr import NodeEventType

from config.settings import settings
from core.execution import ExecutionFailure, ExecutionSuccess, parse_execution_result

logger = structlog.get_logger()


@dataclass
class Heartbeat:
    raw: str = ""


@dataclass
class ApiVersion:
    version: str


@dataclass
class DeployProcessedSuccess:
    deploy_hash: str
    block_hash: str
    account: str
    cost: str
    transforms: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class DeployProcessedFailure:
    deploy_hash: str
    block_hash: str
    account: str
    error_message: str


@dataclass
class Unrecognized:
    kind: str


StreamEvent = Union[Heartbeat, ApiVersion, DeployProcessedSuccess, DeployProcessedFailure, Unrecognized]
DeployHandler = Callable[[DeployProcessedSuccess], None]


def event_type(payload: Dict[str, Any]) -> Optional[NodeEventType]:
    return next((t for t in NodeEventType if t.name in payload), None)


def parse_event(data: str) -> StreamEvent:
    try:
        payload = json.loads(data)
    except (TypeError, ValueError):
        return Heartbeat(data or "")

    # the node announces shutdown with a bare JSON string
    if payload == NodeEventType.Shutdown.name:
        return Unrecognized(NodeEventType.Shutdown.name)
    if not isinstance(payload, dict) or not payload:
        return Unrecognized(type(payload).__name__)

    kind = event_type(payload)
    if kind is NodeEventType.ApiVersion:
        return ApiVersion(str(payload["ApiVersion"]))

    if kind is NodeEventType.DeployProcessed and isinstance(payload["DeployProcessed"], dict):
        processed = payload["DeployProcessed"]
        result = parse_execution_result(processed.get("execution_result"))
        common = dict(
            deploy_hash=str(processed.get("deploy_hash", "")),
            block_hash=str(processed.get("block_hash", "")),
            account=str(processed.get("account", "")),
        )
        if isinstance(result, ExecutionSuccess):
            return DeployProcessedSuccess(cost=result.cost, transforms=result.transforms, **common)
        if isinstance(result, ExecutionFailure):
            return DeployProcessedFailure(error_message=result.error_message, **common)
        return Unrecognized("DeployProcessed")

    return Unrecognized(kind.name if kind else next(iter(payload)))


def log_deploy_processed(event: DeployProcessedSuccess) -> None:
    logger.info("Deploy processed", deploy_hash=event.deploy_hash, transforms=len(event.transforms))


class EventListener:
    def __init__(self, url: Optional[str] = None, handler: DeployHandler = log_deploy_processed,
                 reconnect_max_delay: Optional[float] = None, read_timeout: Optional[float] = None):
        self.url = url or settings.CASPER_EVENTS_URL
        self.handler = handler
        self.reconnect_max_delay = (reconnect_max_delay if reconnect_max_delay is not None
                                    else settings.EVENT_RECONNECT_MAX_DELAY)
        self.read_timeout = read_timeout if read_timeout is not None else settings.EVENT_READ_TIMEOUT
        self.last_event_id: Optional[str] = None
        self._stop = threading.Event()

    def dispatch(self, data: str) -> StreamEvent:
        event = parse_event(data)
        if isinstance(event, DeployProcessedSuccess):
            try:
                self.handler(event)
            except Exception as e:
                logger.error("Deploy handler failed", deploy_hash=event.deploy_hash, error=str(e))
        elif isinstance(event, DeployProcessedFailure):
            logger.info("Deploy failed on chain", deploy_hash=event.deploy_hash, error=event.error_message)
        elif isinstance(event, ApiVersion):
            logger.info("Event stream connected", api_version=event.version)
        elif isinstance(event, Unrecognized):
            logger.debug("Ignoring stream event", kind=event.kind)
        return event

    def listen(self) -> int:
        """Consume one connection until it ends. Returns the number of events seen."""
        params = {"start_from": self.last_event_id} if self.last_event_id is not None else None
        seen = 0
        logger.info("Connecting to event stream", url=self.url)
        try:
            # the node sends keep-alive comments, so a stream silent past read_timeout is dead
            r = requests.get(self.url, params=params, stream=True, headers={"Accept": "text/event-stream"},
                             timeout=(settings.HTTP_TIMEOUT, self.read_timeout))
            r.raise_for_status()
        except requests.RequestException as e:
            logger.error("EventStream error", error=str(e))
            return seen

        stream = sseclient.SSEClient(r)
        try:
            for event in stream.events():
                if self._stop.is_set():
                    break
                if event.id:
                    self.last_event_id = event.id
                self.dispatch(event.data)
                seen += 1
        except requests.RequestException as e:
            logger.error("EventStream error", error=str(e))
        finally:
            stream.close()
        return seen

    def run_forever(self) -> None:
        delay = 1.0
        while not self._stop.is_set():
            seen = self.listen()
            if self._stop.is_set():
                break
            delay = 1.0 if seen else min(delay * 2, self.reconnect_max_delay)
            logger.warning("Event stream closed, reconnecting", delay=delay, last_event_id=self.last_event_id)
            self._stop.wait(delay)

    def stop(self) -> None:
        self._stop.set()
