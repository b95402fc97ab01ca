"""
Turns raw generated text into a small markdown document.

``normalize`` is pure and idempotent: its output fed back in comes out
unchanged, which is why cleaning runs to a fixed point and an existing
heading line is kept apart from the paragraphs.
"""

import re
from typing import Any, List, Optional, Tuple

DEFAULT_TITLE = "Generated Text"
MIN_PARAGRAPH_CHARS = 15
TITLE_WORDS = 5
# only the head of a prompt can hold the topic or the first title words
PROMPT_HEAD_CHARS = 200

_JSON_PREFIX = '{"generated_text":'
_CONTROL_TOKENS_RE = re.compile(
    r"<\|im_start\|>|<\|im_end\|>|<s>|</s>|<\|endoftext\|>"
    r"|<\|assistant\|>|<\|user\|>|<\|system\|>"
)
_REPETITION_RE = re.compile(r"(.{30,})\1{2,}")
_ESCAPE_RE = re.compile(r"\\([\"'nt])")
_ESCAPES = {'"': '"', "'": "'", "n": "\n", "t": "\t"}
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n{2,}")
_FILLER_RE = re.compile(r"give me a|write a|tell me about|create a", re.IGNORECASE)
_TOPIC_RE = re.compile(
    r"^(short story|story|essay|poem|article|text) (about|on|regarding) (.+?)[.?]?$",
    re.IGNORECASE,
)
_NON_WORD_RE = re.compile(r"[^\w\s]")


def normalize(raw_text: Any, original_prompt: Optional[str] = "") -> str:
    if not raw_text or not isinstance(raw_text, str):
        return ""

    prompt = original_prompt or ""
    result = _assemble(raw_text, prompt)
    # the closing period can complete a repeated run, so settle on a fixed point
    while True:
        again = _assemble(result, prompt)
        if again == result:
            return result
        result = again


def _assemble(text: str, prompt: str) -> str:
    text = _clean(text)

    heading, body = _split_heading(text)
    if heading is None:
        heading = synthesize_heading(prompt)

    result = "\n\n".join([heading] + unique_paragraphs(body))
    if result and result[-1] not in ".!?":
        result += "."
    return result


def _clean(text: str) -> str:
    while True:
        cleaned = _clean_once(text)
        if cleaned == text:
            return cleaned
        text = cleaned


def _clean_once(text: str) -> str:
    # JSON fragments left over from the raw response body
    text = text.replace(_JSON_PREFIX, "")
    if text.endswith("}"):
        text = text[:-1]
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]

    text = _CONTROL_TOKENS_RE.sub("", text)
    text = _REPETITION_RE.sub(r"\1", text)
    text = _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], text)
    return _EXCESS_NEWLINES_RE.sub("\n\n", text)


def _split_heading(text: str) -> Tuple[Optional[str], str]:
    stripped = text.strip()
    if not stripped.startswith("#"):
        return None, text
    first_line, _, rest = stripped.partition("\n")
    return first_line.strip(), rest


def synthesize_heading(prompt: str) -> str:
    """
    "write a short story about a lighthouse" -> "# A lighthouse";
    otherwise the first words of the prompt.
    """
    clean_prompt = _FILLER_RE.sub("", prompt[:PROMPT_HEAD_CHARS])
    while True:
        # one line, and nothing a second cleaning pass would still change
        single_line = " ".join(_clean(clean_prompt).split())
        if single_line == clean_prompt:
            break
        clean_prompt = single_line

    match = _TOPIC_RE.match(clean_prompt)
    if match and match.group(3).strip():
        topic = match.group(3).strip()
        return f"# {topic[0].upper()}{topic[1:]}"

    words = clean_prompt.split()
    if not words:
        return f"# {DEFAULT_TITLE}"
    title = " ".join(words[:TITLE_WORDS])
    return f"# {title}{'...' if len(words) > TITLE_WORDS else ''}"


def unique_paragraphs(text: str) -> List[str]:
    seen = set()
    paragraphs: List[str] = []
    for paragraph in _PARAGRAPH_SPLIT_RE.split(text):
        paragraph = paragraph.strip()
        # very short paragraphs are usually noise
        if len(paragraph) < MIN_PARAGRAPH_CHARS:
            continue
        fingerprint = _NON_WORD_RE.sub("", paragraph.lower())
        if fingerprint in seen:
            continue
        seen.add(fingerprint)
        paragraphs.append(paragraph)
    return paragraphs
