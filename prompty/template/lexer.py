"""
Lexical analyzer for prompty templates.

Splits template source into literal text spans and tag spans:

    {~ns.tag attr="v" /~}     self-closing tag
    {~ns.tag attr="v"~}       block open
    {~/ns.tag~}               block close

Line and column are tracked incrementally while scanning, so every token
position is known without re-scanning the source.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from ..errors import LexerError
from .tokens import Position, Token, TokenType

DEFAULT_OPEN_DELIM = "{~"
DEFAULT_CLOSE_DELIM = "~}"

ESCAPE_CHAR = "\\"
CLOSE_MARKER = "/"

# Block tags whose content is not tokenized
VERBATIM_TAGS = ("prompty.raw", "prompty.comment")


def _is_name_start(char: str) -> bool:
    return char.isalpha() or char == "_"


def _is_tag_name_char(char: str) -> bool:
    return char.isalnum() or char in "_-."


def _is_attr_name_char(char: str) -> bool:
    return char.isalnum() or char in "_-"


class TemplateLexer:
    """
    Tokenizer for template source.

    Whitespace between tokens inside a tag is insignificant; literal text
    outside tags is kept byte-for-byte. ``\\{~`` in text yields a literal
    open delimiter.
    """

    def __init__(
        self,
        text: str,
        open_delim: str = DEFAULT_OPEN_DELIM,
        close_delim: str = DEFAULT_CLOSE_DELIM,
    ):
        self.text = text
        self.open_delim = open_delim
        self.close_delim = close_delim
        self.self_close_delim = CLOSE_MARKER + close_delim
        self.length = len(text)
        self.offset = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        """
        Tokenize the whole source.

        Returns:
            Token list terminated by an EOF token

        Raises:
            LexerError: On an unterminated tag or string, or a malformed tag
        """
        tokens: List[Token] = []
        text_parts: List[str] = []
        text_start = self._position()

        while self.offset < self.length:
            next_open = self.text.find(self.open_delim, self.offset)
            if next_open < 0:
                if not text_parts:
                    text_start = self._position()
                text_parts.append(self.text[self.offset:])
                self._advance(self.length - self.offset)
                break

            if next_open > self.offset and self.text[next_open - 1] == ESCAPE_CHAR:
                # Escaped delimiter: keep the text before the backslash plus the delimiter itself
                if not text_parts:
                    text_start = self._position()
                text_parts.append(self.text[self.offset:next_open - 1])
                text_parts.append(self.open_delim)
                self._advance(next_open + len(self.open_delim) - self.offset)
                continue

            if next_open > self.offset:
                if not text_parts:
                    text_start = self._position()
                text_parts.append(self.text[self.offset:next_open])
                self._advance(next_open - self.offset)

            if text_parts:
                tokens.append(self._text_token(text_parts, text_start))
                text_parts = []

            tag = self._scan_tag()
            tokens.append(tag)
            if tag.type == TokenType.BLOCK_OPEN and tag.value in VERBATIM_TAGS:
                content = self._scan_verbatim(tag.value)
                if content is not None:
                    tokens.append(content)

        if text_parts:
            tokens.append(self._text_token(text_parts, text_start))

        tokens.append(Token(TokenType.EOF, "", self._position(), self.offset))
        return tokens

    # Tag scanning

    def _scan_tag(self) -> Token:
        start = self._position()
        self._advance(len(self.open_delim))
        self._skip_whitespace()

        closing = False
        if self._starts_with(CLOSE_MARKER) and not self._starts_with(self.self_close_delim):
            closing = True
            self._advance(1)
            self._skip_whitespace()

        if self._at_end():
            raise LexerError("unterminated tag", start)
        name = self._scan_name(_is_tag_name_char)
        self._skip_whitespace()

        if closing:
            if self._starts_with(self.close_delim):
                self._advance(len(self.close_delim))
                return Token(TokenType.BLOCK_CLOSE, name, start, self.offset)
            if self._at_end():
                raise LexerError("unterminated tag", start)
            raise LexerError("unexpected character", self._position())

        attrs: List[Tuple[str, str]] = []
        while True:
            self._skip_whitespace()
            if self._at_end():
                raise LexerError("unterminated tag", start)
            if self._starts_with(self.self_close_delim):
                self._advance(len(self.self_close_delim))
                return Token(TokenType.SELF_CLOSING, name, start, self.offset, tuple(attrs))
            if self._starts_with(self.close_delim):
                self._advance(len(self.close_delim))
                return Token(TokenType.BLOCK_OPEN, name, start, self.offset, tuple(attrs))
            attrs.append(self._scan_attribute(start))

    def _scan_verbatim(self, tag_name: str) -> Optional[Token]:
        """
        Take everything up to the matching close tag as a single text token.

        Without a close tag the rest of the source is taken; the parser
        reports the unclosed block.
        """
        close_tag = f"{self.open_delim}{CLOSE_MARKER}{tag_name}{self.close_delim}"
        end = self.text.find(close_tag, self.offset)
        if end < 0:
            end = self.length
        if end == self.offset:
            return None
        start = self._position()
        value = self.text[self.offset:end]
        self._advance(end - self.offset)
        return Token(TokenType.TEXT, value, start, self.offset)

    def _scan_name(self, is_name_char) -> str:
        char = self.text[self.offset]
        if not _is_name_start(char):
            raise LexerError("invalid tag name", self._position())
        begin = self.offset
        end = begin + 1
        while end < self.length and is_name_char(self.text[end]):
            end += 1
        self._advance(end - begin)
        return self.text[begin:end]

    def _scan_attribute(self, tag_start: Position) -> Tuple[str, str]:
        if not _is_name_start(self.text[self.offset]):
            raise LexerError("unexpected character", self._position())
        name = self._scan_name(_is_attr_name_char)

        self._skip_whitespace()
        if self._at_end():
            raise LexerError("unterminated tag", tag_start)
        if not self._starts_with("="):
            raise LexerError("unexpected character", self._position())
        self._advance(1)

        self._skip_whitespace()
        if self._at_end():
            raise LexerError("unterminated tag", tag_start)
        quote = self.text[self.offset]
        if quote not in ("\"", "'"):
            raise LexerError("unexpected character", self._position())
        return name, self._scan_string(quote)

    def _scan_string(self, quote: str) -> str:
        start = self._position()
        self._advance(1)
        chars: List[str] = []
        while self.offset < self.length:
            char = self.text[self.offset]
            if char == ESCAPE_CHAR and self.offset + 1 < self.length:
                following = self.text[self.offset + 1]
                if following == quote or following == ESCAPE_CHAR:
                    chars.append(following)
                    self._advance(2)
                    continue
            if char == quote:
                self._advance(1)
                return "".join(chars)
            chars.append(char)
            self._advance(1)
        raise LexerError("unterminated string literal", start)

    # Cursor helpers

    def _text_token(self, parts: List[str], start: Position) -> Token:
        return Token(TokenType.TEXT, "".join(parts), start, self.offset)

    def _position(self) -> Position:
        return Position(self.offset, self.line, self.column)

    def _at_end(self) -> bool:
        return self.offset >= self.length

    def _starts_with(self, value: str) -> bool:
        return self.text.startswith(value, self.offset)

    def _skip_whitespace(self) -> None:
        end = self.offset
        while end < self.length and self.text[end].isspace():
            end += 1
        if end > self.offset:
            self._advance(end - self.offset)

    def _advance(self, count: int) -> None:
        """Move forward ``count`` characters, updating line and column."""
        chunk = self.text[self.offset:self.offset + count]
        newlines = chunk.count("\n")
        if newlines:
            self.line += newlines
            self.column = len(chunk) - chunk.rfind("\n")
        else:
            self.column += len(chunk)
        self.offset += len(chunk)


def tokenize(
    text: str,
    open_delim: str = DEFAULT_OPEN_DELIM,
    close_delim: str = DEFAULT_CLOSE_DELIM,
) -> List[Token]:
    """Tokenize template source with the given delimiters."""
    return TemplateLexer(text, open_delim, close_delim).tokenize()


__all__ = ["TemplateLexer", "tokenize", "DEFAULT_OPEN_DELIM", "DEFAULT_CLOSE_DELIM", "VERBATIM_TAGS"]
