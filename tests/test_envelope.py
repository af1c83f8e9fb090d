from editor_chat.services.gemini_chat.envelope import (
    Complete,
    Incomplete,
    Invalid,
    parse_envelope,
    try_parse,
)


def test_try_parse_complete_value():
    assert try_parse('{"a": [1, 2]}') == Complete({"a": [1, 2]})


def test_try_parse_value_cut_at_the_end_is_incomplete():
    assert isinstance(try_parse('{"a": '), Incomplete)
    assert isinstance(try_parse('{"a": "unterminated'), Incomplete)


def test_try_parse_malformed_value_is_invalid():
    result = try_parse('{"a" 1}')
    assert isinstance(result, Invalid)
    assert "delimiter" in result.reason
    assert isinstance(try_parse('{"a": 1}x'), Invalid)


def test_envelope_text_reads_first_part_of_first_candidate():
    value = {
        "candidates": [
            {"content": {"parts": [{"text": "first"}, {"text": "second"}], "role": "model"}},
            {"content": {"parts": [{"text": "other"}]}},
        ],
        "usageMetadata": {"promptTokenCount": 3},
    }
    assert parse_envelope(value).text == "first"


def test_envelope_text_missing_path_returns_none():
    assert parse_envelope({}).text is None
    assert parse_envelope({"candidates": []}).text is None
    assert parse_envelope({"candidates": [{"finishReason": "STOP"}]}).text is None
    assert parse_envelope({"candidates": [{"content": {"parts": [{"inlineData": {}}]}}]}).text is None


def test_parse_envelope_wrong_shape_returns_none():
    assert parse_envelope(["not", "an", "object"]) is None
    assert parse_envelope({"candidates": [{"content": "text"}]}) is None


def test_parse_envelope_keeps_error_object():
    envelope = parse_envelope({"error": {"code": 400, "message": "bad request"}})
    assert envelope is not None
    assert envelope.error["message"] == "bad request"
    assert envelope.text is None
