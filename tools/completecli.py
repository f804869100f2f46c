import sys
import json
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, AliasChoices
from pydantic_settings import SettingsConfigDict
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout

from jsassist.completer import JsCompleter
from jsassist.models import Caret, CompletionSet
from jsassist.settings import CompleterSettings, print_help
from jsassist.logger import logger


class Settings(CompleterSettings):
    """Completion-CLI specific settings, extending completer settings."""
    model_config = SettingsConfigDict(
        cli_parse_args=True,
        cli_kebab_case=True,
        cli_enforce_required=True,
        env_prefix="JSASSIST_",
    )

    path: str = Field(
        description="JavaScript file to complete in.",
        validation_alias=AliasChoices("path", "p"),
    )
    globals_file: Optional[str] = Field(
        default=None,
        description=(
            "JSON file describing the global object used for dynamic lookup. "
            'Objects may carry their prototype under a "__proto__" key.'
        ),
    )
    limit: int = Field(default=20, description="Maximum number of candidates to print.")
    log_level: str = Field(
        default="WARNING",
        description="Level of the jsassist logger (DEBUG shows cache rebuilds and walk caps).",
    )


def _print_candidates(candidates: CompletionSet, limit: int) -> None:
    if not len(candidates):
        print("No candidates.")
        return
    for c in list(candidates)[:limit]:
        print(f"{c.score:>4}  {c.display:<30} +{c.postfix}")
    if len(candidates) > limit:
        print(f"... {len(candidates) - limit} more.")


def _parse_query(query: str) -> Caret:
    # "12:4" -> line 12, column 4, both 1-based like editors show them.
    line, _, col = query.partition(":")
    return Caret(line=int(line) - 1, ch=int(col or 1) - 1)


def _load_globals(path: Optional[str]) -> Any:
    if path is None:
        return None
    return json.loads(Path(path).read_text())


def main() -> None:
    if "--help" in sys.argv or "-h" in sys.argv:
        print_help(Settings, "completecli.py")
        sys.exit(0)

    try:
        settings = Settings()
    except Exception as e:
        print(f"Error: Invalid settings.\n{e}", file=sys.stderr)
        sys.exit(1)

    logger.set_level(settings.log_level.upper())
    source_path = Path(settings.path)
    completer = JsCompleter(settings, global_object=_load_globals(settings.globals_file))

    print("Interactive completion. Type LINE:COL, '/reload' or '/exit'.")
    session: PromptSession = PromptSession(history=FileHistory(".completion_history"))
    fire = True
    with completer, patch_stdout():
        while True:
            try:
                query = session.prompt("> ")
            except (EOFError, KeyboardInterrupt):
                break
            query = query.strip()
            if not query:
                continue
            if query.lower() in {"/exit", "/quit"}:
                break
            if query.lower() == "/reload":
                fire = True
                continue

            try:
                caret = _parse_query(query)
                source = source_path.read_text()
                candidates = completer.complete(source, caret, fire_static_analysis=fire)
                fire = False
                _print_candidates(candidates, settings.limit)
            except Exception as exc:        # noqa: BLE001
                logger.error("Completion failed", query=query, exc=exc)


if __name__ == "__main__":
    main()
