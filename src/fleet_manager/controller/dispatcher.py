"""Fan a request template out to a set of agents and aggregate the replies.

The dispatcher resolves targets through the :class:`AgentRegistry`, sends
the same immutable :class:`ApiRequester` to every address on a thread pool,
and keys each wrapped reply by node id. Only selector problems fail the
whole call; a node that errors or times out gets its own failed entry.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Collection

from fleet_manager.discovery.registry import AgentRegistry
from fleet_manager.errors import ClientInputError, DiscoveryInconsistency
from fleet_manager.models import AggregateResponse, Scope, WrappedResponse
from fleet_manager.transport.requester import ApiRequester
from fleet_manager.transport.wrapper import wrap_response, wrap_transport_error

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """Sends one request template to every agent selected by scope or id."""

    def __init__(self, registry: AgentRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    def forward_request(
        self,
        scope: str | None,
        requester: ApiRequester,
        node_ids: Collection[str] = (),
    ) -> AggregateResponse:
        """Send *requester* to the agents picked by *scope* or *node_ids*.

        Exactly one selector must be given.

        Raises:
            ClientInputError: Both or neither selector given, unknown scope,
                or an unknown/duplicate node id.
            DiscoveryInconsistency: Discovery failed, or COORDINATOR scope
                didn't resolve to exactly one node.
        """
        has_scope = scope is not None
        has_ids = len(node_ids) > 0
        if has_scope == has_ids:
            logger.error("Invalid parameters: scope=%r nodeId=%r", scope, list(node_ids))
            raise ClientInputError("Invalid parameters")

        if scope is not None:
            try:
                api_scope = Scope.parse(scope)
            except ValueError as e:
                logger.error("Invalid scope: %r", scope)
                raise ClientInputError("Invalid scope") from e
            targets = self._registry.resolve_scope(api_scope)
            if api_scope is Scope.COORDINATOR and len(targets) != 1:
                logger.error("Number of coordinators is %d, expected 1", len(targets))
                self._registry.invalidate()
                raise DiscoveryInconsistency("Number of coordinators is not 1")
        else:
            targets = self._registry.resolve_ids(node_ids)

        return AggregateResponse(responses=self._send_all(requester, targets))

    def _send_all(
        self, requester: ApiRequester, targets: dict[str, str],
    ) -> dict[str, WrappedResponse]:
        if not targets:
            return {}

        # One thread per target node.
        results: dict[str, WrappedResponse] = {}
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=len(targets), thread_name_prefix="dispatch",
        ) as executor:
            futures = {
                executor.submit(requester.send, address): node_id
                for node_id, address in targets.items()
            }
            for future in concurrent.futures.as_completed(futures):
                node_id = futures[future]
                try:
                    results[node_id] = wrap_response(future.result())
                except Exception as e:
                    logger.warning(
                        "%s %s to node %s failed: %s",
                        requester.method, requester.path, node_id, e,
                    )
                    results[node_id] = wrap_transport_error(e)

        logger.info(
            "%s %s dispatched to %d node(s), %d ok",
            requester.method,
            requester.path,
            len(results),
            sum(1 for r in results.values() if r.ok),
        )
        return {node_id: results[node_id] for node_id in sorted(results)}
