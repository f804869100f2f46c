"""
JavaScript completion session.

Candidates come from three sources, ranked in this order:

1. static analysis of the edited buffer (score >= 0, the scope depth),
2. the live global object, when one is provided (score -1),
3. JavaScript keywords (score <= -2, by usage frequency).
"""
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from jsassist.context import get_context
from jsassist.helpers import blank_trailing_dot, compute_source_hash
from jsassist.inference import lookup_completions
from jsassist.keywords import JS_KEYWORDS, keyword_completions
from jsassist.lang import JavaScriptCodeParser, JavaScriptTokenizer  # noqa: F401  registers them
from jsassist.logger import logger
from jsassist.models import Caret, CompletionContext, CompletionKind, CompletionSet, ProgrammingLanguage
from jsassist.parsers import (
    AbstractCodeParser, AbstractTokenizer, CodeParserRegistry, ParseError, SyntaxTree,
)
from jsassist.sandbox import ObjectReflector, PythonReflector, identifier_lookup
from jsassist.scope import StaticAnalyzer
from jsassist.settings import CompleterSettings
from jsassist.typestore import TypeStore

CaretLike = Union[Caret, Dict[str, Any]]


def rank(
    context: CompletionContext,
    static_store: Optional[TypeStore],
    global_object: Any,
    keywords: Optional[Dict[str, int]],
    tokenizer: AbstractTokenizer,
    reflector: Optional[ObjectReflector] = None,
    max_properties: Optional[int] = None,
) -> CompletionSet:
    """
    Merge static, dynamic and keyword candidates for *context*, sorted by
    descending score. A display found by several sources keeps its first
    (highest level) occurrence.
    """
    completion = CompletionSet()

    if static_store is not None:
        completion.meld(lookup_completions(static_store, context, tokenizer.is_identifier))

    if global_object is not None:
        completion.meld(identifier_lookup(
            global_object,
            context,
            static_store,
            tokenizer.is_identifier,
            reflector=reflector,
            max_properties=max_properties,
        ))

    # Keywords only make sense for a bare identifier.
    if keywords and context.kind == CompletionKind.IDENTIFIER and len(context.chain) == 1:
        completion.meld(keyword_completions(context.chain[0], keywords))

    completion.sort()
    return completion


@dataclass
class StaticCache:
    store: TypeStore
    version: int
    source_hash: str
    caret: Caret


class JsCompleter:
    """
    Completion session over one edited buffer.

    The static analysis of the buffer is cached between calls. A rebuild
    that fails to parse keeps the previous analysis, so completion keeps
    working while the user is in the middle of typing something invalid.
    """

    def __init__(
        self,
        settings: Optional[CompleterSettings] = None,
        global_object: Any = None,
        reflector: Optional[ObjectReflector] = None,
        parser: Optional[AbstractCodeParser] = None,
        tokenizer: Optional[AbstractTokenizer] = None,
    ) -> None:
        self.settings = settings or CompleterSettings()
        self.global_object = global_object
        self.reflector = reflector or PythonReflector()
        self.parser = parser or self._registered(CodeParserRegistry.get_parser)
        self.tokenizer = tokenizer or self._registered(CodeParserRegistry.get_tokenizer)

        self._cache: Optional[StaticCache] = None
        self._version = 0
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    @staticmethod
    def _registered(getter):
        cls = getter(ProgrammingLanguage.JAVASCRIPT)
        if cls is None:
            raise RuntimeError("No JavaScript implementation registered")
        return cls()

    @property
    def static_store(self) -> Optional[TypeStore]:
        cache = self._cache
        return cache.store if cache is not None else None

    @property
    def cache_version(self) -> Optional[int]:
        cache = self._cache
        return cache.version if cache is not None else None

    # ------------------------------------------------------------------ #
    # Completion
    # ------------------------------------------------------------------ #
    def complete(
        self,
        source: str,
        caret: CaretLike,
        *,
        fire_static_analysis: bool = False,
        context_from: Optional[str] = None,
    ) -> CompletionSet:
        """
        Candidates at *caret* in *source*.

        The static cache is rebuilt when *fire_static_analysis* is set or when
        there is none yet. *context_from*, when given, is the caret's line:
        the context is then read from it instead of from *source*.
        """
        caret = Caret.coerce(caret)

        if fire_static_analysis or self._cache is None:
            if self.settings.background_parse:
                self.invalidate_cache_async(source, caret)
            else:
                self.invalidate_cache(source, caret)

        if context_from is not None:
            context = get_context(context_from, Caret(line=0, ch=caret.ch), self.tokenizer)
        else:
            context = get_context(source, caret, self.tokenizer)
        if context is None:
            return CompletionSet()

        return rank(
            context,
            self.static_store,
            self.global_object,
            JS_KEYWORDS if self.settings.keywords_enabled else None,
            self.tokenizer,
            reflector=self.reflector,
            max_properties=self.settings.max_sandbox_properties,
        )

    # ------------------------------------------------------------------ #
    # Static cache
    # ------------------------------------------------------------------ #
    def _next_version(self) -> int:
        with self._lock:
            self._version += 1
            return self._version

    def _parse(self, source: str, caret: Caret) -> Optional[SyntaxTree]:
        try:
            return self.parser.parse(source)
        except ParseError as exc:
            error = exc

        # `foo.|` does not parse: retry with the dangling dot blanked out.
        repaired = blank_trailing_dot(source, caret)
        if repaired is not None:
            try:
                return self.parser.parse(repaired)
            except ParseError:
                pass

        logger.debug(
            "Static cache: parse failed, keeping previous analysis",
            line=error.line,
            column=error.column,
            stale=self._cache is not None,
        )
        return None

    def _is_current(self, source_hash: str, caret: Caret) -> bool:
        # Same buffer, same caret and no newer rebuild pending.
        with self._lock:
            cache = self._cache
            return (
                cache is not None
                and cache.version == self._version
                and cache.source_hash == source_hash
                and cache.caret == caret
            )

    def _publish(self, version: int, tree: SyntaxTree, caret: Caret, source_hash: str) -> bool:
        store = StaticAnalyzer(self.settings).analyze(tree, caret)
        with self._lock:
            if version < self._version:
                logger.debug("Static cache: discarding outdated analysis", version=version, latest=self._version)
                return False
            self._cache = StaticCache(store=store, version=version, source_hash=source_hash, caret=caret)
        return True

    def invalidate_cache(self, source: str, caret: CaretLike) -> bool:
        """
        Rebuild the static analysis of *source* now. Returns False, leaving
        the previous analysis in place, when the source does not parse. An
        unchanged source and caret keep the current analysis.
        """
        caret = Caret.coerce(caret)
        source_hash = compute_source_hash(source)
        if self._is_current(source_hash, caret):
            logger.debug("Static cache: source unchanged", version=self._version)
            return True
        version = self._next_version()
        tree = self._parse(source, caret)
        if tree is None:
            return False
        return self._publish(version, tree, caret, source_hash)

    def invalidate_cache_async(self, source: str, caret: CaretLike) -> "Future[bool]":
        """
        Parse *source* on a worker thread, then analyse it and publish the
        result unless a newer rebuild was requested meanwhile. The returned
        future resolves to whether the cache was replaced.
        """
        caret = Caret.coerce(caret)
        published: "Future[bool]" = Future()
        source_hash = compute_source_hash(source)
        if self._is_current(source_hash, caret):
            published.set_result(True)
            return published
        version = self._next_version()

        def _on_parsed(parsed: "Future[Optional[SyntaxTree]]") -> None:
            try:
                tree = parsed.result()
                if tree is None or version < self._version:
                    published.set_result(False)
                    return
                published.set_result(self._publish(version, tree, caret, source_hash))
            except Exception as exc:
                logger.error("Static cache: background rebuild failed", version=version, exc=exc)
                published.set_exception(exc)

        self._get_executor().submit(self._parse, source, caret).add_done_callback(_on_parsed)
        return published

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.settings.parse_workers,
                    thread_name_prefix="jsassist-parse",
                )
            return self._executor

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "JsCompleter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
