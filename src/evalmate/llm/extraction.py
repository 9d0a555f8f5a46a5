"""Recover a JSON object from free-text model output.

Models wrap their answer in prose, markdown fences, or write code fields as raw
backtick blocks instead of JSON strings. ``extract_json_object`` tries, in order:

1. a direct parse when the trimmed text starts with ``{``;
2. a scan for outermost brace-balanced objects, ignoring braces inside JSON
   strings and backtick runs;
3. the first fenced code block.

Each candidate is parsed as-is first and, failing that, after ``sanitize_json_text``.
The function never raises; callers inspect ``ExtractionResult.status``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal

ExtractionStatus = Literal["parsed", "extracted", "failed"]

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_FENCE_TAG = re.compile(r"(?:[A-Za-z0-9_+#.-]*[ \t]*\n)?")
_MAX_SCAN_STARTS = 20


@dataclass(frozen=True)
class ExtractionResult:
    status: ExtractionStatus
    payload: dict[str, Any] | None = None
    caveats: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


def sanitize_json_text(text: str) -> tuple[str, list[str]]:
    """Repair common model formatting mistakes. Returns the new text and a list of repairs.

    Only backticks outside double-quoted strings are touched: a backtick run in
    value position (after ``:``) becomes a JSON string, fence markers elsewhere are
    dropped with their language tag, and any other stray run is dropped.
    """
    out: list[str] = []
    rewritten = fences = stray = 0
    in_string = False
    last = ""
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if in_string:
            if ch == "\\":
                out.append(text[i : i + 2])
                i += 2
                continue
            if ch == '"':
                in_string = False
                last = ch
            out.append(ch)
            i += 1
            continue
        if ch == "`":
            run = _run_length(text, i, "`")
            body_start = i + run
            if run >= 3:
                tag = _FENCE_TAG.match(text, body_start)
                body_start = tag.end()
            close = text.find("`" * run, body_start)
            if last == ":" and close != -1:
                out.append(json.dumps(text[body_start:close].strip("\n")))
                rewritten += 1
                last = '"'
                i = close + run
                continue
            if run >= 3:
                fences += 1
            else:
                stray += run
            i = body_start
            continue
        if ch == '"':
            in_string = True
        elif not ch.isspace():
            last = ch
        out.append(ch)
        i += 1

    caveats: list[str] = []
    if rewritten:
        caveats.append(f"rewrote {rewritten} backtick-delimited value(s) as JSON strings")
    if fences:
        caveats.append(f"removed {fences} code fence marker(s)")
    if stray:
        caveats.append(f"removed {stray} stray backtick(s)")
    return "".join(out), caveats


def extract_json_object(text: str) -> ExtractionResult:
    candidate = (text or "").strip()
    if not candidate:
        return ExtractionResult(status="failed", error="empty model output")

    last_error = "no JSON object found in model output"
    if candidate.startswith("{"):
        payload, caveats, err = _load_object(candidate)
        if payload is not None:
            return ExtractionResult(status="parsed", payload=payload, caveats=caveats)
        last_error = err or last_error

    for span in _balanced_objects(candidate):
        payload, caveats, err = _load_object(span)
        if payload is not None:
            return ExtractionResult(
                status="extracted",
                payload=payload,
                caveats=["extracted brace-balanced object from surrounding text", *caveats],
            )
        last_error = err or last_error

    fenced = _FENCED_BLOCK.search(candidate)
    if fenced:
        payload, caveats, err = _load_object(fenced.group(1).strip())
        if payload is not None:
            return ExtractionResult(
                status="extracted",
                payload=payload,
                caveats=["extracted fenced code block", *caveats],
            )
        last_error = err or last_error

    return ExtractionResult(status="failed", error=last_error)


def _load_object(candidate: str) -> tuple[dict[str, Any] | None, list[str], str | None]:
    try:
        value = json.loads(candidate, strict=False)
    except json.JSONDecodeError as exc:
        first_error = f"invalid JSON: {exc.msg} at char {exc.pos}"
    else:
        if isinstance(value, dict):
            return value, [], None
        return None, [], f"expected a JSON object, got {type(value).__name__}"

    sanitized, caveats = sanitize_json_text(candidate)
    if not caveats:
        return None, [], first_error
    try:
        value = json.loads(sanitized, strict=False)
    except json.JSONDecodeError as exc:
        return None, caveats, f"invalid JSON after sanitising: {exc.msg} at char {exc.pos}"
    if not isinstance(value, dict):
        return None, caveats, f"expected a JSON object, got {type(value).__name__}"
    return value, caveats, None


def _balanced_objects(text: str) -> Iterator[str]:
    # Outermost objects only: a nested object is never a candidate on its own.
    start = text.find("{")
    tried = 0
    while start != -1 and tried < _MAX_SCAN_STARTS:
        tried += 1
        end = _matching_brace(text, start)
        if end is None:
            start = text.find("{", start + 1)
            continue
        yield text[start : end + 1]
        start = text.find("{", end + 1)


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    i = start
    length = len(text)
    while i < length:
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "`":
            run = _run_length(text, i, "`")
            close = text.find("`" * run, i + run)
            if close != -1:
                i = close + run
                continue
            i += run
            continue
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def _run_length(text: str, index: int, char: str) -> int:
    end = index
    while end < len(text) and text[end] == char:
        end += 1
    return end - index
