"""Tests for decode strikes and throttling of inbound frames."""

from chessroom.messaging.encoder import encode
from chessroom.messaging.types import ErrorMessage, SessionErrorCode
from chessroom.server.rate_limit import TokenBucket
from chessroom.server.websocket import MAX_DECODE_STRIKES, InboundGate

GARBAGE = b"\xc1"  # reserved MessagePack byte, never valid


def make_gate(burst: int = 100) -> InboundGate:
    return InboundGate(TokenBucket(rate=0.001, burst=burst))


class TestInboundGate:
    def test_valid_frame_decoded(self):
        gate = make_gate()

        assert gate.admit(encode({"type": "ping"})) == {"type": "ping"}

    def test_garbage_counts_a_strike(self):
        gate = make_gate()

        result = gate.admit(GARBAGE)

        assert isinstance(result, ErrorMessage)
        assert result.code == SessionErrorCode.INVALID_MESSAGE
        assert gate.strikes == 1
        assert not gate.exhausted

    def test_exhausted_after_consecutive_strikes(self):
        gate = make_gate()

        for _ in range(MAX_DECODE_STRIKES):
            gate.admit(GARBAGE)

        assert gate.exhausted

    def test_valid_frame_clears_strikes(self):
        gate = make_gate()
        for _ in range(MAX_DECODE_STRIKES - 1):
            gate.admit(GARBAGE)

        gate.admit(encode({"type": "ping"}))

        assert gate.strikes == 0

    def test_non_map_frame_is_a_strike(self):
        gate = make_gate()

        assert isinstance(gate.admit(encode([1, 2, 3])), ErrorMessage)  # type: ignore[arg-type]
        assert gate.strikes == 1

    def test_rate_limited_once_bucket_empty(self):
        gate = make_gate(burst=1)
        gate.admit(encode({"type": "ping"}))

        result = gate.admit(encode({"type": "ping"}))

        assert isinstance(result, ErrorMessage)
        assert result.code == SessionErrorCode.RATE_LIMITED
        assert gate.strikes == 0

    def test_undecodable_frames_do_not_spend_tokens(self):
        gate = make_gate(burst=1)
        gate.admit(GARBAGE)

        assert gate.admit(encode({"type": "ping"})) == {"type": "ping"}
