from typing import Dict, Optional

from jsassist.models import Candidate, CompletionSet

# Most frequent first, following usage counts over popular JavaScript code.
# The tail has no frequency data. `true`, `false`, `null` and `undefined`
# are not keywords but are completed like them.
_KEYWORDS_BY_FREQUENCY = (
    "this", "function", "if", "return", "var", "let", "else", "for", "new",
    "in", "typeof", "while", "case", "break", "try", "catch", "delete",
    "throw", "switch", "continue", "default", "instanceof", "do", "void",
    "finally",
    "true", "false", "null", "undefined", "class", "super", "import",
    "export", "get", "of", "set", "const", "with", "debugger",
)

# The first keyword weighs -2, the second -3 and so on: always below
# static (>= 0) and dynamic (-1) candidates.
JS_KEYWORDS: Dict[str, int] = {
    keyword: -(rank + 2) for rank, keyword in enumerate(_KEYWORDS_BY_FREQUENCY)
}


def keyword_completions(prefix: str, keywords: Optional[Dict[str, int]] = None) -> CompletionSet:
    if keywords is None:
        keywords = JS_KEYWORDS
    completion = CompletionSet()
    if not prefix:
        return completion
    for keyword, score in keywords.items():
        if keyword.startswith(prefix) and len(keyword) > len(prefix):
            completion.insert(Candidate(display=keyword, prefix=prefix, score=score))
    return completion
