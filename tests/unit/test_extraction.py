import json

from evalmate.llm.extraction import extract_json_object, sanitize_json_text

CLEAN = {
    "score": 7,
    "strengths": ["uses a dict for lookups"],
    "improvements": ["handle None input"],
    "feedback": "Works, but { braces } in prose should not confuse anything.",
    "suggestions": ["add tests"],
}


def test_direct_object_is_parsed_without_caveats() -> None:
    result = extract_json_object(json.dumps(CLEAN))

    assert result.status == "parsed"
    assert result.payload == CLEAN
    assert result.caveats == []
    assert result.ok


def test_fenced_output_with_prose_is_extracted() -> None:
    text = "Here is my evaluation:\n```json\n" + json.dumps(CLEAN, indent=2) + "\n```\nThanks!"

    result = extract_json_object(text)

    assert result.status == "extracted"
    assert result.payload == CLEAN


def test_braces_inside_strings_do_not_break_matching() -> None:
    payload = dict(CLEAN, feedback='Prefer "}" escapes like \\" and {nested} text')
    text = "Sure! " + json.dumps(payload) + " Let me know."

    result = extract_json_object(text)

    assert result.payload == payload


def test_backtick_code_value_is_rewritten_as_json_string() -> None:
    text = (
        "Evaluation follows.\n"
        '{"architecture": "fine", "correctedCode": ```python\n'
        "def f(x):\n"
        '    return {"k": x}\n'
        "```, \"security\": \"ok\"}"
    )

    result = extract_json_object(text)

    assert result.status == "extracted"
    assert result.payload is not None
    assert result.payload["correctedCode"] == 'def f(x):\n    return {"k": x}'
    assert result.payload["security"] == "ok"
    assert any("backtick" in caveat for caveat in result.caveats)


def test_single_backtick_value_is_rewritten() -> None:
    text = '{"feedback": `looks good`, "score": 5}'

    result = extract_json_object(text)

    assert result.status == "parsed"
    assert result.payload == {"feedback": "looks good", "score": 5}


def test_prose_brace_before_real_object_is_skipped() -> None:
    text = "Using {curly} notation, the result is " + json.dumps(CLEAN)

    result = extract_json_object(text)

    assert result.payload == CLEAN


def test_unparseable_text_fails_without_raising() -> None:
    result = extract_json_object("I could not evaluate this submission.")

    assert result.status == "failed"
    assert result.payload is None
    assert result.error


def test_empty_text_fails() -> None:
    assert extract_json_object("").status == "failed"
    assert extract_json_object("   ").status == "failed"


def test_top_level_array_is_not_an_object() -> None:
    result = extract_json_object("[1, 2, 3]")

    assert result.status == "failed"


def test_sanitize_reports_each_repair() -> None:
    text, caveats = sanitize_json_text('```json\n{"a": `b`}\n```')

    assert "`" not in text
    assert json.loads(text) == {"a": "b"}
    assert len(caveats) == 2


def test_sanitize_leaves_clean_json_alone() -> None:
    text, caveats = sanitize_json_text('{"a": 1}')

    assert text == '{"a": 1}'
    assert caveats == []


def test_inline_code_inside_string_survives_backtick_repair(insights_payload) -> None:
    payload = dict(insights_payload, security="Note: `eval` is never called")
    body = json.dumps({k: v for k, v in payload.items() if k != "correctedCode"})
    text = body[:-1] + ', "correctedCode": ```python\ndef add(a, b):\n    return a + b\n```}'

    result = extract_json_object(text)

    assert result.status == "parsed"
    assert result.payload is not None
    assert result.payload["security"] == "Note: `eval` is never called"
    assert result.payload["correctedCode"] == "def add(a, b):\n    return a + b"
    assert result.payload["expertRecommendations"] == insights_payload["expertRecommendations"]


def test_nested_object_is_never_returned_on_its_own() -> None:
    text = 'Result: {"score": 7, "details": {"ok": true}, "feedback": oops}'

    result = extract_json_object(text)

    assert result.status == "failed"
    assert result.payload is None


def test_sanitize_keeps_backticks_inside_strings() -> None:
    text, caveats = sanitize_json_text('{"a": "use `x: y` here", "b": `z`}')

    assert json.loads(text) == {"a": "use `x: y` here", "b": "z"}
    assert caveats == ["rewrote 1 backtick-delimited value(s) as JSON strings"]
