"""Balanced-delimiter scanning over JavaScript/TypeScript source text.

Regular expressions cannot find the end of an argument list that contains
nested calls or inline functions, so every extractor locates its start with a
regex and its end with these helpers. String literals, template literals and
comments are skipped so that delimiters inside them never count. A slash
starts a regex literal when the preceding token cannot end an operand.
"""

PAIRS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {v: k for k, v in PAIRS.items()}
QUOTES = "'\"`"
REGEX_PRECEDING_WORDS = {"return", "typeof", "case", "in", "of", "void", "delete", "throw", "instanceof", "new", "yield", "await"}


def skip_string(text: str, start: int) -> int | None:
    """Return the index just past the literal opening at `start`, or None if unterminated."""
    quote = text[start]
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if quote == "`" and text.startswith("${", i):
            end = find_matching(text, i + 1)
            if end is None:
                return None
            i = end + 1
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and quote != "`":
            return None
        i += 1
    return None


def skip_comment(text: str, start: int) -> int | None:
    """Return the index past a comment starting at `start`, or None if there is none."""
    if text.startswith("//", start):
        end = text.find("\n", start)
        return len(text) if end == -1 else end + 1
    if text.startswith("/*", start):
        end = text.find("*/", start + 2)
        return len(text) if end == -1 else end + 2
    return None


def skip_regex(text: str, start: int) -> int | None:
    """Return the index past a regex literal at `start`, or None if the slash is a division."""
    j = start - 1
    while j >= 0 and text[j] in " \t\r\n":
        j -= 1
    if j >= 0:
        prev = text[j]
        if prev in ")]":
            return None
        if prev.isalnum() or prev in "_$":
            k = j
            while k >= 0 and (text[k].isalnum() or text[k] in "_$"):
                k -= 1
            if text[k + 1:j + 1] not in REGEX_PRECEDING_WORDS:
                return None
    in_class = False
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            return None
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            i += 1
            while i < n and text[i].isalpha():
                i += 1
            return i
        i += 1
    return None


def find_matching(text: str, start: int) -> int | None:
    """Find the closer matching the opener at `start`.

    A depth counter is incremented on every opener of the same kind and
    decremented on every closer; the scan ends only when it returns to zero.
    Returns None for an unterminated group.
    """
    opener = text[start]
    closer = PAIRS[opener]
    depth = 0
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            end = skip_string(text, i)
            if end is None:
                return None
            i = end
            continue
        if ch == "/":
            end = skip_comment(text, i)
            if end is not None:
                i = end
                continue
            end = skip_regex(text, i)
            if end is not None:
                i = end
                continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split on `sep` occurring outside of any bracket group or literal."""
    parts: list[str] = []
    depth = 0
    current = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            end = skip_string(text, i)
            i = n if end is None else end
            continue
        if ch == "/":
            end = skip_comment(text, i)
            if end is not None:
                i = end
                continue
            end = skip_regex(text, i)
            if end is not None:
                i = end
                continue
        if ch in PAIRS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(text[current:i])
            current = i + 1
        i += 1
    parts.append(text[current:])
    return [p.strip() for p in parts if p.strip()]


def strip_comments(text: str) -> str:
    """Remove comments, leaving string and regex literals untouched."""
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in QUOTES:
            end = skip_string(text, i)
            end = n if end is None else end
            out.append(text[i:end])
            i = end
            continue
        if ch == "/":
            end = skip_comment(text, i)
            if end is not None:
                out.append("\n" if text[end - 1:end] == "\n" else " ")
                i = end
                continue
            end = skip_regex(text, i)
            if end is not None:
                out.append(text[i:end])
                i = end
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def unquote(literal: str) -> str | None:
    """Return the contents of a quoted literal, or None if `literal` is not one."""
    literal = literal.strip()
    if len(literal) >= 2 and literal[0] in QUOTES and literal[-1] == literal[0]:
        return literal[1:-1]
    return None


def object_entries(literal: str) -> dict[str, str]:
    """Map keys of an object literal (`{a: 1, b}`) to their value expressions.

    Shorthand properties map to themselves; spreads are ignored.
    """
    literal = literal.strip()
    if not literal.startswith("{"):
        return {}
    end = find_matching(literal, 0)
    if end is None:
        return {}
    entries: dict[str, str] = {}
    for part in split_top_level(literal[1:end]):
        if part.startswith("..."):
            continue
        key, sep, value = part.partition(":")
        key = key.strip()
        key = unquote(key) or key
        if not key.replace("$", "").replace("_", "").isalnum():
            continue
        entries[key] = value.strip() if sep else key
    return entries
