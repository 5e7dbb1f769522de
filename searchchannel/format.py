"""Text helpers for channel command arguments."""

_ESCAPE = "\\"
_ESCAPED = {"n": "\n", '"': '"'}


def unescape(text: str) -> str:
    """Resolve ``\\n`` and ``\\"`` escapes in a command text.

    Any other escaped character is replaced by the escape character itself.
    """
    unescaped: list[str] = []
    characters = iter(text)

    for character in characters:
        if character == _ESCAPE:
            following = next(characters, None)
            unescaped.append(_ESCAPED.get(following, character) if following else character)
        else:
            unescaped.append(character)

    return "".join(unescaped)