"""
Node API collaborators for cl-fees-chart

Thin read-only wrappers over the lightningd JSON-RPC used by the chart
builder:
- fetch_forwards: settled forwards inside a time window, capped in count
- fetch_node_info: a peer's alias and the set of its channel ids

RpcError from pyln-client is never caught here; callers see the
original failure.
"""

import heapq
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterator, List, Tuple

MSAT_PER_SAT = 1000


class NodeNotFoundError(Exception):
    """Raised when a public key is unknown to both the graph and our peers."""
    pass


@dataclass(frozen=True)
class ForwardEvent:
    """A settled forward through one of our channels."""
    incoming_channel: str
    outgoing_channel: str
    fee_tokens: int      # Satoshis, rounded down from fee_msat
    created_at: float    # Unix timestamp of resolution

    @classmethod
    def from_listforwards(cls, forward: Dict[str, Any]) -> 'ForwardEvent':
        created_at = forward.get('resolved_time') or forward.get('received_time') or 0
        fee_msat = forward.get('fee_msat', forward.get('fee', 0))
        return cls(
            incoming_channel=forward.get('in_channel', ''),
            outgoing_channel=forward.get('out_channel', ''),
            fee_tokens=parse_msat(fee_msat) // MSAT_PER_SAT,
            created_at=float(created_at),
        )


@dataclass(frozen=True)
class ForwardBatch:
    """Forwards returned for one window, oldest first."""
    forwards: Tuple[ForwardEvent, ...]
    truncated: bool = False


@dataclass(frozen=True)
class PeerChannelSet:
    """The channels belonging to a peer, used to filter forwards."""
    public_key: str
    alias: str
    channel_ids: FrozenSet[str]

    def touches(self, forward: ForwardEvent) -> bool:
        """True if either side of the forward uses one of the peer's channels."""
        return (
            forward.incoming_channel in self.channel_ids
            or forward.outgoing_channel in self.channel_ids
        )


def parse_msat(value: Any) -> int:
    """Parse an msat amount given as int or a legacy '1234msat' string."""
    if isinstance(value, str):
        return int(value.replace("msat", ""))
    return int(value or 0)


def _listforwards_pages(rpc: Any, page_size: int) -> Iterator[List[Dict[str, Any]]]:
    """
    Yield listforwards results one page at a time.

    Pages walk the `created` index so the node never serializes its whole
    history in one response. A page_size of 0 makes a single unpaged call
    filtered to settled forwards, for nodes without listforwards paging.
    """
    if not page_size:
        yield rpc.call("listforwards", {"status": "settled"}).get('forwards', [])
        return

    start = 0
    while True:
        page = rpc.call(
            "listforwards",
            {"index": "created", "start": start, "limit": page_size},
        ).get('forwards', [])
        yield page
        if len(page) < page_size:
            return
        start = page[-1].get('created_index', start + len(page) - 1) + 1


def fetch_forwards(rpc: Any, after: float, before: float, limit: int,
                   page_size: int = 0) -> ForwardBatch:
    """
    Get settled forwards resolved within [after, before].

    Args:
        rpc: lightningd RPC proxy
        after: Window start as a unix timestamp
        before: Window end as a unix timestamp
        limit: Maximum number of forwards to return
        page_size: Forwards requested per listforwards call (0 = one call)

    Returns:
        ForwardBatch ordered oldest to newest. When more than `limit`
        forwards fall in the window only the most recent `limit` are kept
        and the batch is marked truncated.
    """
    # Min-heap of the newest `limit` forwards seen so far
    newest: List[Tuple[float, int, ForwardEvent]] = []
    matched = 0

    for page in _listforwards_pages(rpc, page_size):
        for raw in page:
            if raw.get('status', 'settled') != 'settled':
                continue
            forward = ForwardEvent.from_listforwards(raw)
            if not after <= forward.created_at <= before:
                continue
            entry = (forward.created_at, matched, forward)
            matched += 1
            if len(newest) < limit:
                heapq.heappush(newest, entry)
            elif entry > newest[0]:
                heapq.heapreplace(newest, entry)

    forwards = [forward for _, _, forward in sorted(newest)]
    return ForwardBatch(forwards=tuple(forwards), truncated=matched > limit)


def fetch_node_info(rpc: Any, public_key: str) -> PeerChannelSet:
    """
    Get a node's alias and channel ids.

    Channel ids come from the public graph (listchannels) merged with our
    own channels to the node (listpeerchannels), so private channels with a
    direct peer are included.

    Raises:
        NodeNotFoundError: if neither the graph nor our peers know the node
    """
    nodes = rpc.call("listnodes", {"id": public_key}).get('nodes', [])
    graph_channels = rpc.call("listchannels", {"source": public_key}).get('channels', [])
    peer_channels = rpc.call("listpeerchannels", {"id": public_key}).get('channels', [])

    if not nodes and not graph_channels and not peer_channels:
        raise NodeNotFoundError(f"Node {public_key} not found")

    channel_ids = set()
    for channel in graph_channels + peer_channels:
        scid = channel.get('short_channel_id')
        if scid:
            channel_ids.add(scid)

    alias = nodes[0].get('alias') if nodes else None

    return PeerChannelSet(
        public_key=public_key,
        alias=alias or public_key[:16],
        channel_ids=frozenset(channel_ids),
    )
