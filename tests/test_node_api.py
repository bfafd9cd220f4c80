"""
Tests for the lightningd RPC collaborators used by the chart builder.
"""

import pytest
from unittest.mock import MagicMock

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pyln.client import RpcError

from modules.node_api import (
    ForwardEvent,
    NodeNotFoundError,
    PeerChannelSet,
    fetch_forwards,
    fetch_node_info,
    parse_msat,
)


PEER = '03' + 'c' * 64


@pytest.fixture
def mock_rpc():
    """Create a mock RPC proxy."""
    return MagicMock()


def _forward(resolved, fee_msat=1000, status='settled', in_channel='1x1x0', out_channel='2x1x0'):
    return {
        'in_channel': in_channel,
        'out_channel': out_channel,
        'fee_msat': fee_msat,
        'status': status,
        'received_time': resolved - 2,
        'resolved_time': resolved,
    }


class TestParseMsat:

    def test_int(self):
        assert parse_msat(1234) == 1234

    def test_legacy_string(self):
        assert parse_msat("1234msat") == 1234

    def test_missing(self):
        assert parse_msat(None) == 0


class TestForwardEvent:

    def test_fee_rounds_down_to_sats(self):
        event = ForwardEvent.from_listforwards(_forward(1000.0, fee_msat=1999))
        assert event.fee_tokens == 1

    def test_prefers_resolved_time(self):
        event = ForwardEvent.from_listforwards(_forward(1000.5))
        assert event.created_at == 1000.5

    def test_falls_back_to_received_time(self):
        raw = _forward(1000.0)
        del raw['resolved_time']
        assert ForwardEvent.from_listforwards(raw).created_at == 998.0

    def test_legacy_fee_field(self):
        raw = _forward(1000.0)
        del raw['fee_msat']
        raw['fee'] = 5000
        assert ForwardEvent.from_listforwards(raw).fee_tokens == 5


class TestFetchForwards:

    def test_requests_settled_forwards(self, mock_rpc):
        mock_rpc.call.return_value = {'forwards': []}
        fetch_forwards(mock_rpc, after=0, before=100, limit=10)
        mock_rpc.call.assert_called_once_with("listforwards", {"status": "settled"})

    def test_window_is_inclusive(self, mock_rpc):
        mock_rpc.call.return_value = {'forwards': [
            _forward(99.0), _forward(100.0), _forward(150.0), _forward(200.0), _forward(201.0),
        ]}
        batch = fetch_forwards(mock_rpc, after=100, before=200, limit=10)
        assert [f.created_at for f in batch.forwards] == [100.0, 150.0, 200.0]
        assert batch.truncated is False

    def test_skips_unsettled(self, mock_rpc):
        mock_rpc.call.return_value = {'forwards': [
            _forward(150.0, status='failed'), _forward(160.0),
        ]}
        batch = fetch_forwards(mock_rpc, after=100, before=200, limit=10)
        assert len(batch.forwards) == 1

    def test_sorted_oldest_first(self, mock_rpc):
        mock_rpc.call.return_value = {'forwards': [_forward(180.0), _forward(120.0)]}
        batch = fetch_forwards(mock_rpc, after=100, before=200, limit=10)
        assert [f.created_at for f in batch.forwards] == [120.0, 180.0]

    def test_limit_keeps_most_recent(self, mock_rpc):
        mock_rpc.call.return_value = {'forwards': [
            _forward(110.0), _forward(120.0), _forward(130.0),
        ]}
        batch = fetch_forwards(mock_rpc, after=100, before=200, limit=2)
        assert [f.created_at for f in batch.forwards] == [120.0, 130.0]
        assert batch.truncated is True

    def test_exactly_at_limit_is_not_truncated(self, mock_rpc):
        mock_rpc.call.return_value = {'forwards': [_forward(110.0), _forward(120.0)]}
        batch = fetch_forwards(mock_rpc, after=100, before=200, limit=2)
        assert batch.truncated is False

    def test_pages_through_created_index(self, mock_rpc):
        pages = [
            {'forwards': [dict(_forward(110.0), created_index=1), dict(_forward(120.0), created_index=2)]},
            {'forwards': [dict(_forward(130.0), created_index=5), dict(_forward(140.0), created_index=6)]},
            {'forwards': [dict(_forward(150.0), created_index=7)]},
        ]
        mock_rpc.call.side_effect = pages
        batch = fetch_forwards(mock_rpc, after=100, before=200, limit=10, page_size=2)

        assert [f.created_at for f in batch.forwards] == [110.0, 120.0, 130.0, 140.0, 150.0]
        starts = [c.args[1]['start'] for c in mock_rpc.call.call_args_list]
        assert starts == [0, 3, 7]
        assert all(c.args[1]['index'] == 'created' for c in mock_rpc.call.call_args_list)
        assert all(c.args[1]['limit'] == 2 for c in mock_rpc.call.call_args_list)

    def test_paging_filters_unsettled(self, mock_rpc):
        mock_rpc.call.side_effect = [
            {'forwards': [dict(_forward(110.0, status='failed'), created_index=1),
                          dict(_forward(120.0), created_index=2)]},
            {'forwards': []},
        ]
        batch = fetch_forwards(mock_rpc, after=100, before=200, limit=10, page_size=2)
        assert [f.created_at for f in batch.forwards] == [120.0]
        assert mock_rpc.call.call_count == 2

    def test_paging_keeps_most_recent_across_pages(self, mock_rpc):
        mock_rpc.call.side_effect = [
            {'forwards': [dict(_forward(150.0), created_index=1), dict(_forward(110.0), created_index=2)]},
            {'forwards': [dict(_forward(130.0), created_index=3)]},
        ]
        batch = fetch_forwards(mock_rpc, after=100, before=200, limit=2, page_size=2)
        assert [f.created_at for f in batch.forwards] == [130.0, 150.0]
        assert batch.truncated is True

    def test_rpc_error_propagates(self, mock_rpc):
        mock_rpc.call.side_effect = RpcError('listforwards', {}, {'message': 'denied'})
        with pytest.raises(RpcError):
            fetch_forwards(mock_rpc, after=0, before=1, limit=1)


class TestFetchNodeInfo:

    @staticmethod
    def _rpc(nodes, graph, peer):
        responses = {
            'listnodes': {'nodes': nodes},
            'listchannels': {'channels': graph},
            'listpeerchannels': {'channels': peer},
        }
        rpc = MagicMock()
        rpc.call.side_effect = lambda method, payload=None: responses[method]
        return rpc

    def test_merges_and_dedups_channels(self):
        rpc = self._rpc(
            nodes=[{'nodeid': PEER, 'alias': 'Carol'}],
            graph=[{'short_channel_id': 'A'}, {'short_channel_id': 'A'}, {'short_channel_id': 'B'}],
            peer=[{'short_channel_id': 'B'}, {'short_channel_id': 'P'}, {'state': 'OPENINGD'}],
        )
        peer = fetch_node_info(rpc, PEER)

        assert peer.alias == 'Carol'
        assert peer.channel_ids == frozenset({'A', 'B', 'P'})
        assert peer.public_key == PEER

    def test_alias_falls_back_to_pubkey_prefix(self):
        rpc = self._rpc(nodes=[], graph=[], peer=[{'short_channel_id': 'P'}])
        peer = fetch_node_info(rpc, PEER)
        assert peer.alias == PEER[:16]

    def test_unknown_node(self):
        rpc = self._rpc(nodes=[], graph=[], peer=[])
        with pytest.raises(NodeNotFoundError):
            fetch_node_info(rpc, PEER)

    def test_touches(self):
        peer = PeerChannelSet(public_key=PEER, alias='Carol', channel_ids=frozenset({'A'}))
        assert peer.touches(ForwardEvent('A', 'X', 1, 0.0))
        assert peer.touches(ForwardEvent('X', 'A', 1, 0.0))
        assert not peer.touches(ForwardEvent('X', 'Y', 1, 0.0))
