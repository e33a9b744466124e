import asyncio
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import pycspr
from pycspr.api.rpc.proxy import ProxyError
from pycspr.types.node.rpc import Deploy

from config.settings import settings
from core.errors import RpcError


def connection_info(node_url: str) -> pycspr.NodeRpcConnectionInfo:
    """pycspr addresses a node by host and port and always talks to http://host:port/rpc."""
    parts = urlsplit(node_url)
    return pycspr.NodeRpcConnectionInfo(host=parts.hostname or "localhost", port=parts.port or 7777)


class CasperRpcClient:
    """Blocking front for pycspr's async NodeRpcClient, used from scheduler and worker threads."""

    def __init__(self, node_url: Optional[str] = None, client=None):
        self.node_url = node_url or settings.CASPER_NODE_URL
        self.client = client or pycspr.NodeRpcClient(connection_info(self.node_url))

    def put_deploy(self, deploy: Deploy) -> str:
        return self._run("account_put_deploy", self.client.send_deploy(deploy))

    def get_deploy(self, deploy_hash: str) -> Dict[str, Any]:
        """Raw deploy JSON; pycspr moves the node's `execution_results` under `execution_info`."""
        return self._run("info_get_deploy", self.client.get_deploy(deploy_hash, decode=False))

    def _run(self, method: str, call):
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(call)
        except ProxyError as e:
            err = e.args[0] if e.args else None
            raise RpcError(method, getattr(err, "code", None), getattr(err, "message", str(e))) from e
        finally:
            loop.close()
