from typing import Optional, List, Set, Type, Any

from pydantic import Field, BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompleterSettings(BaseSettings):
    """Top-level settings for a completion session."""

    model_config = SettingsConfigDict(env_prefix="JSASSIST_")

    global_identifier: Optional[str] = Field(
        None,
        description=(
            'Name of the global object in the edited code (eg. "window"). '
            "Properties assigned on it are completed as top-level symbols."
        ),
    )
    max_walk_steps: int = Field(
        100_000,
        gt=0,
        description=(
            "Soft cap on the number of AST nodes the scope walker visits per "
            "analysis. The walk stops and keeps what it found when exceeded."
        ),
    )
    max_function_nesting: int = Field(
        32,
        gt=0,
        description=(
            "How deep function shapes are computed for functions nested in "
            "functions. Deeper ones are only known to be functions."
        ),
    )
    max_sandbox_properties: Optional[int] = Field(
        None,
        description=(
            "Maximum number of property names collected from a live object "
            "during dynamic lookup. None means no limit."
        ),
    )
    keywords_enabled: bool = Field(
        True, description="If True, JavaScript keywords are offered as candidates."
    )
    background_parse: bool = Field(
        False,
        description=(
            "If True, cache invalidations parse the source on a worker thread "
            "and publish the result when it lands."
        ),
    )
    parse_workers: int = Field(
        1, gt=0, description="Number of worker threads used for background parsing."
    )


class CliOption(BaseModel):
    """Represents a single command-line option."""

    flag: str
    aliases: List[str] = Field(default_factory=list)
    description: str
    is_required: bool
    default_value: Any


def load_settings(
    cli: bool = False,
    env_prefix: Optional[str] = None,
    env_file: Optional[str] = None,
    toml_file: Optional[str] = None,
    json_file: Optional[str] = None,
    **kwargs,
) -> CompleterSettings:
    config_dict = SettingsConfigDict(
        cli_parse_args = cli,
        env_prefix = env_prefix if env_prefix is not None else "JSASSIST_",
        env_file = env_file,
        toml_file = toml_file,
        json_file = json_file,
    )

    class Settings(CompleterSettings):
        model_config = config_dict

    return Settings(**kwargs)


def iter_settings(model: Type[BaseModel], *, kebab: bool = False) -> List[CliOption]:
    """
    Return a list of `CliOption` models for every CLI option that *model* would accept.

    Only flat models are supported; aliases declared through ``AliasChoices``
    are reported next to the main flag.
    """
    seen: Set[str] = set()
    out: List[CliOption] = []

    for name, field in model.model_fields.items():
        flag_name = name.replace("_", "-") if kebab else name
        flags = [f"--{flag_name}"]

        alias = field.validation_alias
        choices = getattr(alias, "choices", None) or ([alias] if isinstance(alias, str) else [])
        for choice in choices:
            if not isinstance(choice, str) or choice in (name, flag_name):
                continue
            flags.append(f"-{choice}" if len(choice) == 1 else f"--{choice}")

        main_flag, aliases = flags[0], sorted(flags[1:])
        if main_flag in seen:
            continue
        seen.add(main_flag)
        out.append(
            CliOption(
                flag=main_flag,
                aliases=aliases,
                description=field.description or "",
                is_required=field.is_required(),
                default_value=field.get_default() if not field.is_required() else ...,
            )
        )
    return sorted(out, key=lambda o: o.flag)


def print_help(model: Type[BaseModel], script_name: str, kebab: bool = True):
    """
    Print a formatted help message for a Pydantic settings model.
    """
    print(f"usage: {script_name} [OPTIONS]")
    print("\nOptions:")
    for opt in iter_settings(model, kebab=kebab):
        flag_str = ", ".join([opt.flag] + opt.aliases)
        line = f"  {flag_str:<40} {opt.description}"

        details = []
        if opt.is_required:
            details.append("required")
        if opt.default_value is not ...:
            details.append(f"default: {opt.default_value!r}")
        if details:
            line += f" [{', '.join(details)}]"
        print(line)
