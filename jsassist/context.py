"""
Caret contextualization: map a source buffer and a caret to what the user is
completing.

For instance, `foo.bar.ba|z` gives an identifier completion on
``["foo", "bar", "ba"]`` and `foo.|` a property completion on ``["foo"]``.
"""
from bisect import bisect_left
from typing import Any, Dict, List, Optional, Tuple, Union

from jsassist.helpers import caret_offset
from jsassist.logger import logger
from jsassist.models import Caret, CompletionContext, CompletionKind
from jsassist.parsers import (
    AbstractTokenizer, Token, TokenizeError,
    IDENTIFIER_TOKEN, KEYWORD_TOKEN, PUNCTUATOR_TOKEN,
    STRING_TOKEN, TEMPLATE_TOKEN, REGEX_TOKEN,
)

LINE_TERMINATORS = frozenset("\n\r\u2028\u2029")


def _skip_quoted(source: str, index: int) -> Tuple[int, bool]:
    """
    *index* is on an opening quote or backtick. Return the index right after
    the literal and whether it was terminated.

    Quoted strings only cross lines through a backslash continuation; an
    unescaped line terminator ends them unterminated. Template literals may
    contain raw line breaks.
    """
    quote = source[index]
    i = index + 1
    n = len(source)
    while i < n:
        ch = source[i]
        if ch == quote:
            return i + 1, True
        if ch == "\\":
            i += 2
            continue
        if ch in LINE_TERMINATORS and quote != "`":
            return i, False
        i += 1
    return n, False


def _skip_block_comment(source: str, index: int) -> Tuple[int, bool]:
    end = source.find("*/", index + 2)
    if end < 0:
        return len(source), False
    return end + 2, True


def _skip_line_comment(source: str, index: int) -> Tuple[int, bool]:
    i = index
    while i < len(source) and source[i] not in LINE_TERMINATORS:
        i += 1
    # The comment runs up to the end of the line: a caret there is inside it.
    return i, False


def reduce_context(source: str, caret: Caret) -> Optional[Tuple[str, Caret]]:
    """
    Reduce *source* to the single line slice holding the caret, and the
    caret repositioned inside it.

    Literals and comments spanning several lines are skipped, and the slice
    starts after them when they end on the caret's line:
    `foo\\nfoo.bar.baz|` gives ``("foo.bar.baz", Caret(line=0, ch=11))``.

    Returns None when the caret is outside the source or inside a string,
    template or comment.
    """
    target = caret_offset(source, caret)
    if target is None:
        return None

    i = 0
    cut = 0
    while i < target:
        ch = source[i]
        nxt = source[i + 1] if i + 1 < len(source) else ""
        if ch in LINE_TERMINATORS:
            i += 1
            cut = i
            continue
        if ch in "\"'`":
            end, closed = _skip_quoted(source, i)
        elif ch == "/" and nxt == "*" and (i == 0 or source[i - 1] != "\\"):
            end, closed = _skip_block_comment(source, i)
        elif ch == "/" and nxt == "/":
            end, closed = _skip_line_comment(source, i)
        else:
            i += 1
            continue

        if target < end or (not closed and target == end):
            return None
        if any(c in LINE_TERMINATORS for c in source[i:end]):
            cut = end
        i = end

    # One character past the caret is kept, so the token under the caret
    # is seen whole by the tokenizer.
    stop = target
    if target < len(source) and source[target] not in LINE_TERMINATORS:
        stop += 1
    return source[cut:stop], Caret(line=0, ch=target - cut)


def _is_name(token: Token) -> bool:
    return token.type == IDENTIFIER_TOKEN or (
        token.type == KEYWORD_TOKEN and token.value == "this"
    )


def _is_dot(token: Token) -> bool:
    return token.type == PUNCTUATOR_TOKEN and token.value == "."


def _token_text(token: Token, column: int) -> str:
    # Only the part left of the caret has been typed.
    if token.start < column < token.end:
        return token.value[: column - token.start]
    return token.value


def _collect_chain(tokens: List[Token], index: int, column: int) -> Tuple[List[str], Optional[Token]]:
    """
    Walk backwards from *tokens[index]* through `ident (. ident)*`.

    Returns the chain, and the token before the leading dot when the chain
    hangs off something that is not a name (eg. `"foo".ba`), else None.
    """
    chain: List[str] = []
    expect_name = True
    while index >= 0:
        token = tokens[index]
        if expect_name:
            if not _is_name(token):
                chain.reverse()
                return chain, token
            chain.append(_token_text(token, column))
        elif not _is_dot(token):
            break
        expect_name = not expect_name
        index -= 1
    chain.reverse()
    return chain, None


def _kind_after_dot(token: Optional[Token]) -> Optional[CompletionKind]:
    if token is None:
        return None
    if token.type in (STRING_TOKEN, TEMPLATE_TOKEN):
        return CompletionKind.STRING
    if token.type == REGEX_TOKEN:
        return CompletionKind.REGEX
    return None


def context_from_token(tokens: List[Token], index: int, column: int) -> Optional[CompletionContext]:
    token = tokens[index]
    prev = tokens[index - 1] if index > 0 else None

    if _is_dot(token):
        if prev is None:
            return None
        if _is_name(prev):
            chain, _ = _collect_chain(tokens, index - 1, column)
            return CompletionContext(kind=CompletionKind.PROPERTY, chain=chain)
        kind = _kind_after_dot(prev)
        if kind is None:
            return None
        return CompletionContext(kind=kind, chain=[])

    if token.type == IDENTIFIER_TOKEN:
        chain, dangling = _collect_chain(tokens, index, column)
        if dangling is None:
            return CompletionContext(kind=CompletionKind.IDENTIFIER, chain=chain)
        # `"foo".ch|`: the root is a literal, only its last segment matters.
        kind = _kind_after_dot(dangling)
        if kind is None or len(chain) != 1:
            return None
        return CompletionContext(kind=kind, chain=chain)

    return None


def _token_index(tokens: List[Token], column: int) -> Optional[int]:
    """
    Index of the token whose span (start, end] holds *column*; when the
    caret sits in whitespace, the token right before it.
    """
    ends = [t.end for t in tokens]
    index = bisect_left(ends, column)
    if index < len(tokens) and tokens[index].start < column:
        return index
    return index - 1 if index > 0 else None


def get_context(
    source: str,
    caret: Union[Caret, Dict[str, Any]],
    tokenizer: AbstractTokenizer,
) -> Optional[CompletionContext]:
    """
    Return the completion context at *caret*, or None when nothing can be
    completed there. Never raises for unparseable input.
    """
    caret = Caret.coerce(caret)
    reduction = reduce_context(source, caret)
    if reduction is None:
        return None
    line, local_caret = reduction

    try:
        tokens = tokenizer.tokenize(line)
    except TokenizeError as exc:
        logger.debug("Context: cannot tokenize caret line", error=str(exc), line=caret.line)
        return None
    if not tokens:
        return None

    index = _token_index(tokens, local_caret.ch)
    if index is None:
        return None
    return context_from_token(tokens, index, local_caret.ch)
