from .javascript import JavaScriptCodeParser, JavaScriptTokenizer
