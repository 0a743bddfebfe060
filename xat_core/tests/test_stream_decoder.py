from xat_core.domain.models import StreamEvent
from xat_core.providers.stream_decoder import AzureStreamDecoder, ClaudeStreamDecoder


AZURE_STREAM = (
    'data: {"choices": [{"delta": {"role": "assistant", "content": ""}}]}\n'
    "\n"
    'data: {"choices": [{"delta": {"content": "Héllo"}}]}\r\n'
    ": keep-alive comment\n"
    'data: {"choices": [{"delta": {"content": " 你好"}}]}\n'
    "data: {not json}\n"
    'data: {"choices": [{"delta": {"content": "!"}}]}\n'
    "data: [DONE]\n"
).encode("utf-8")


def _decode_all(decoder, chunks):
    events = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    events.extend(decoder.close())
    return events


def test_azure_split_at_every_byte_offset_matches_whole_stream():
    expected = _decode_all(AzureStreamDecoder(), [AZURE_STREAM])
    assert [e.kind for e in expected] == ["delta", "delta", "error", "delta", "done"]
    assert "".join(e.content for e in expected if e.kind == "delta") == "Héllo 你好!"

    for offset in range(len(AZURE_STREAM) + 1):
        chunks = [AZURE_STREAM[:offset], AZURE_STREAM[offset:]]
        assert _decode_all(AzureStreamDecoder(), chunks) == expected, offset


def test_byte_at_a_time_feed_matches_whole_stream():
    expected = _decode_all(AzureStreamDecoder(), [AZURE_STREAM])
    chunks = [AZURE_STREAM[i:i + 1] for i in range(len(AZURE_STREAM))]
    assert _decode_all(AzureStreamDecoder(), chunks) == expected


def test_prefix_split_across_feeds_is_recognized():
    decoder = AzureStreamDecoder()
    assert decoder.feed("da") == []
    assert decoder.feed('ta: {"choices": [{"delta": {"content": "x"}}]}') == []
    assert decoder.feed("\n") == [StreamEvent.delta("x")]


def test_done_sentinel_is_terminal_and_nothing_follows():
    decoder = AzureStreamDecoder()
    events = decoder.feed('data: [DONE]\ndata: {"choices": [{"delta": {"content": "late"}}]}\n')
    assert events == [StreamEvent.done()]
    assert decoder.finished
    assert decoder.feed('data: {"choices": [{"delta": {"content": "later"}}]}\n') == []
    assert decoder.close() == []


def test_malformed_line_reports_error_and_continues():
    decoder = AzureStreamDecoder()
    events = decoder.feed('data: {"choices": [\ndata: {"choices": [{"delta": {"content": "ok"}}]}\n')
    assert [e.kind for e in events] == ["error", "delta"]
    assert events[0].message.startswith("Error parsing stream data")
    assert not decoder.finished


def test_non_object_payload_is_a_parse_error():
    events = AzureStreamDecoder().feed("data: [1, 2]\n")
    assert [e.kind for e in events] == ["error"]


def test_lines_without_data_prefix_are_ignored():
    decoder = AzureStreamDecoder()
    assert decoder.feed('data:{"choices": [{"delta": {"content": "no space"}}]}\n') == []
    assert decoder.feed("event: message\nid: 3\n\n") == []


def test_close_parses_trailing_line_and_synthesizes_done():
    decoder = AzureStreamDecoder()
    assert decoder.feed('data: {"choices": [{"delta": {"content": "tail"}}]}') == []
    assert decoder.close() == [StreamEvent.delta("tail"), StreamEvent.done()]
    assert decoder.finished


def test_azure_role_defaults_to_assistant_and_keeps_given_role():
    decoder = AzureStreamDecoder()
    events = decoder.feed(
        'data: {"choices": [{"delta": {"content": "a"}}]}\n'
        'data: {"choices": [{"delta": {"content": "b", "role": "tool"}}]}\n'
        'data: {"choices": []}\n'
    )
    assert [(e.content, e.role) for e in events] == [("a", "assistant"), ("b", "tool")]


CLAUDE_STREAM = (
    "event: message_start\n"
    'data: {"type": "message_start", "message": {"id": "msg_1"}}\n'
    "\n"
    "event: content_block_start\n"
    'data: {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}}\n'
    'data: {"type": "ping"}\n'
    'data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}}\n'
    'data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": " there"}}\n'
    'data: {"type": "message_delta", "delta": {"stop_reason": "end_turn"}}\n'
    'data: {"type": "message_stop"}\n'
).encode("utf-8")


def test_claude_event_kinds():
    events = _decode_all(ClaudeStreamDecoder(), [CLAUDE_STREAM])
    assert events == [StreamEvent.delta("Hi"), StreamEvent.delta(" there"), StreamEvent.done()]


def test_claude_split_at_every_byte_offset_matches_whole_stream():
    expected = _decode_all(ClaudeStreamDecoder(), [CLAUDE_STREAM])
    for offset in range(0, len(CLAUDE_STREAM) + 1, 7):
        chunks = [CLAUDE_STREAM[:offset], CLAUDE_STREAM[offset:]]
        assert _decode_all(ClaudeStreamDecoder(), chunks) == expected, offset


def test_claude_done_sentinel_also_terminates():
    decoder = ClaudeStreamDecoder()
    assert decoder.feed("data: [DONE]\n") == [StreamEvent.done()]
    assert decoder.close() == []


def test_exactly_one_terminal_event_at_the_end():
    for stream in (AZURE_STREAM, CLAUDE_STREAM, b'data: {"choices": []}\n'):
        for decoder in (AzureStreamDecoder(), ClaudeStreamDecoder()):
            events = _decode_all(decoder, [stream])
            assert [e.kind for e in events].count("done") == 1
            assert events[-1].kind == "done"
