from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel

from jsassist.models import ProgrammingLanguage


class JsAssistError(Exception):
    """Base class of the errors raised by jsassist collaborators."""


class ParseError(JsAssistError):
    """Source could not be parsed into a clean syntax tree."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.column = column


class TokenizeError(JsAssistError):
    """Source could not be split into tokens."""


# Token type names shared by every tokenizer (Esprima naming).
IDENTIFIER_TOKEN = "Identifier"
KEYWORD_TOKEN = "Keyword"
PUNCTUATOR_TOKEN = "Punctuator"
STRING_TOKEN = "String"
TEMPLATE_TOKEN = "Template"
REGEX_TOKEN = "RegularExpression"


class Token(BaseModel):
    type: str
    value: str
    line: int   # 0-based
    start: int  # 0-based start column
    end: int    # column right after the token


class SyntaxTree(BaseModel):
    """Parsed source. `root` is the parser specific root node."""
    model_config = {"arbitrary_types_allowed": True}

    language: ProgrammingLanguage
    source: str
    root: Any


# Abstract base parser class
class AbstractCodeParser(ABC):
    """
    Turns source text into a syntax tree annotated with line/column spans.
    """
    language: ProgrammingLanguage

    @abstractmethod
    def parse(self, source: str) -> SyntaxTree:
        """Parse *source*; raise ParseError on syntax errors."""
        ...


class AbstractTokenizer(ABC):
    """
    Splits source text into tokens annotated with line/column spans.
    """
    language: ProgrammingLanguage

    @abstractmethod
    def tokenize(self, source: str) -> List[Token]:
        """Tokenize *source*; raise TokenizeError on lexical errors."""
        ...

    def is_identifier(self, name: str) -> bool:
        """
        True when *name* tokenizes to exactly one identifier token, that is
        when it can be written after a dot as a bare property accessor.
        """
        if not name:
            return False
        try:
            tokens = self.tokenize(name)
        except TokenizeError:
            return False
        return len(tokens) == 1 and tokens[0].type == IDENTIFIER_TOKEN


class CodeParserRegistry:
    """
    Singleton registry mapping languages to parser and tokenizer implementations.
    """
    _instance = None
    _parsers: Dict[ProgrammingLanguage, Type[AbstractCodeParser]] = {}
    _tokenizers: Dict[ProgrammingLanguage, Type[AbstractTokenizer]] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(CodeParserRegistry, cls).__new__(cls)
        return cls._instance

    @classmethod
    def register_parser(cls, lang: ProgrammingLanguage, parser: Type[AbstractCodeParser]) -> None:
        cls._parsers[lang] = parser

    @classmethod
    def register_tokenizer(cls, lang: ProgrammingLanguage, tokenizer: Type[AbstractTokenizer]) -> None:
        cls._tokenizers[lang] = tokenizer

    @classmethod
    def get_parser(cls, lang: ProgrammingLanguage) -> Optional[Type[AbstractCodeParser]]:
        return cls._parsers.get(lang)

    @classmethod
    def get_tokenizer(cls, lang: ProgrammingLanguage) -> Optional[Type[AbstractTokenizer]]:
        return cls._tokenizers.get(lang)
