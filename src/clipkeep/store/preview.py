"""Display previews for clipboard payloads."""

ELLIPSIS = "…"

# Leading bytes -> format name
_MAGIC = (
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff", "jpeg"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
    (b"BM", "bmp"),
    (b"%PDF-", "pdf"),
)


def sniff_format(content: bytes) -> str | None:
    """Guess a binary payload's format from its magic bytes."""
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "webp"
    for magic, name in _MAGIC:
        if content.startswith(magic):
            return name
    return None


def human_size(size: int) -> str:
    """Format a byte count as B, KiB or MiB."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KiB"
    return f"{size / (1024 * 1024):.1f} MiB"


def describe_binary(content: bytes) -> str:
    parts = ["binary data", human_size(len(content))]
    fmt = sniff_format(content)
    if fmt:
        parts.append(fmt)
    return f"[[ {' '.join(parts)} ]]"


def decode_for_display(content: bytes) -> str:
    """
    Turn a payload into a single display line.

    UTF-8 text has its whitespace runs collapsed to single spaces; anything
    else is described as binary data.
    """
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        return describe_binary(content)
    return " ".join(text.split())


def truncate(text: str, width: int) -> str:
    """
    Cut `text` to at most `width` characters, marking the cut with an ellipsis.

    Raises:
        ValueError: If width is less than 1
    """
    if width < 1:
        raise ValueError(f"Preview width must be at least 1, got {width}")
    if len(text) <= width:
        return text
    return text[: width - 1] + ELLIPSIS


def make_preview(content: bytes, width: int) -> str:
    return truncate(decode_for_display(content), width)
