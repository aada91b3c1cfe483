"""
Typed options, filled from config files, `--set` specs and command line flags.

Options only live during startup: once everything is applied they are turned into
an immutable `tlsgate.config.ProxyConfig`, so there are no change notifications.
"""

from __future__ import annotations

import copy
import textwrap
import typing
from collections import abc
from pathlib import Path
from typing import Any
from typing import TextIO

import ruamel.yaml

from tlsgate import exceptions

# Option types we know how to check, parse and expose on the command line,
# with the name used for them in help texts.
TYPESPECS: list[tuple[Any, str]] = [
    (int, "int"),
    (str, "str"),
    (typing.Optional[str], "optional str"),
    (typing.Optional[float], "optional float"),
    (abc.Sequence[str], "sequence of str"),
    (typing.Sequence[str], "sequence of str"),
]


def typespec_name(typespec: Any) -> str:
    """
    *Raises:*
     - ValueError, if options of this type are not supported.
    """
    for t, name in TYPESPECS:
        if typespec == t:
            return name
    raise ValueError(f"Unsupported option type: {typespec}")


def _matches(kind: str, value: Any) -> bool:
    if kind == "sequence of str":
        return isinstance(value, (list, tuple)) and all(
            isinstance(x, str) for x in value
        )
    if value is None:
        return kind.startswith("optional")
    if isinstance(value, bool):
        return False
    if kind == "int":
        return isinstance(value, int)
    if kind == "optional float":
        return isinstance(value, (int, float))
    return isinstance(value, str)


class _Option:
    __slots__ = ("name", "typespec", "kind", "default", "help", "choices", "value")

    def __init__(
        self,
        name: str,
        typespec: Any,
        default: Any,
        help: str,
        choices: abc.Sequence[str] | None,
    ) -> None:
        self.name = name
        self.typespec = typespec
        self.kind = typespec_name(typespec)
        self.help = " ".join(textwrap.dedent(help).split())
        self.choices = choices
        self.check(default)
        self.default = default
        self.value = copy.copy(default)

    def check(self, value: Any) -> None:
        if not _matches(self.kind, value):
            raise exceptions.ConfigError(
                f"Expected {self.kind} for {self.name}, but got {value!r}."
            )
        if self.choices is not None and value not in self.choices:
            raise exceptions.ConfigError(
                f"Invalid value for {self.name}: {value!r}. "
                f"Valid values are {', '.join(repr(c) for c in self.choices)}."
            )

    def current(self) -> Any:
        return copy.copy(self.value)

    def parse(self, values: list[str]) -> Any:
        """Convert the values of one or more `--set name=value` specs."""
        if self.kind == "sequence of str":
            return values
        if len(values) > 1:
            raise exceptions.ConfigError(
                f"Received multiple values for {self.name}: {values}"
            )
        text = values[0] if values else None

        if text is None:
            if self.kind.startswith("optional"):
                return None
            raise exceptions.ConfigError(f"Option is required: {self.name}")
        if self.kind == "int":
            try:
                return int(text)
            except ValueError:
                raise exceptions.ConfigError(f"Not an integer: {text}")
        if self.kind == "optional float":
            try:
                return float(text)
            except ValueError:
                raise exceptions.ConfigError(f"Not a number: {text}")
        return text


class OptManager:
    """
    Base class for option collections. Subclasses declare their options with
    `add_option` and read them back as attributes.

    Values that are read out are copies, mutating them does not change the option.
    """

    def __init__(self) -> None:
        self.deferred: dict[str, Any] = {}
        self._options: dict[str, _Option] = {}

    def add_option(
        self,
        name: str,
        typespec: Any,
        default: Any,
        help: str,
        choices: abc.Sequence[str] | None = None,
    ) -> None:
        self._options[name] = _Option(name, typespec, default, help, choices)

    def __getattr__(self, attr):
        options = self.__dict__.get("_options", {})
        if attr in options:
            return options[attr].current()
        raise AttributeError(f"No such option: {attr}")

    def __setattr__(self, attr, value):
        if attr in ("deferred", "_options"):
            super().__setattr__(attr, value)
        else:
            self.update(**{attr: value})

    def __contains__(self, name) -> bool:
        return name in self._options

    def default(self, name: str) -> Any:
        return copy.copy(self._options[name].default)

    def update(self, **kwargs) -> None:
        """
        Set several options at once. Either all values are applied or none is.

        *Raises:*
         - ConfigError, if an option is unknown or a value is invalid.
        """
        unknown = [k for k in kwargs if k not in self._options]
        if unknown:
            raise exceptions.ConfigError(f"Unknown option(s): {', '.join(unknown)}")
        for k, v in kwargs.items():
            self._options[k].check(v)
        for k, v in kwargs.items():
            self._options[k].value = copy.copy(v)

    def update_defer(self, **kwargs) -> None:
        """Like `update`, but unknown options are kept in `deferred` instead."""
        self.deferred.update(
            {k: v for k, v in kwargs.items() if k not in self._options}
        )
        self.update(**{k: v for k, v in kwargs.items() if k in self._options})

    def set(self, *specs: str, defer: bool = False) -> None:
        """
        Apply `option=value` specs. A spec without a value sets the option to None,
        or to an empty sequence. Sequence options collect all values given for them.

        *Raises:*
         - ConfigError, if a value is malformed, or an option is unknown and defer is False.
        """
        grouped: dict[str, list[str]] = {}
        for spec in specs:
            name, sep, value = spec.partition("=")
            values = grouped.setdefault(name, [])
            if sep:
                values.append(value)

        unknown = {k: v for k, v in grouped.items() if k not in self._options}
        if unknown and not defer:
            raise exceptions.ConfigError(f"Unknown option(s): {', '.join(unknown)}")
        self.deferred.update(unknown)

        self.update(
            **{
                name: self._options[name].parse(values)
                for name, values in grouped.items()
                if name in self._options
            }
        )

    def check_deferred(self) -> None:
        """
        *Raises:*
         - ConfigError, if any option was set that does not exist.
        """
        if self.deferred:
            raise exceptions.ConfigError(
                f"Unknown option(s): {', '.join(sorted(self.deferred))}"
            )

    def make_parser(self, parser, optname, metavar=None, short=None) -> None:
        """
        Add a command line flag for an option, `--opt-name` plus `-short` if given.
        Unknown options are ignored.
        """
        if optname not in self._options:
            return
        o = self._options[optname]

        flags = ["--" + optname.replace("_", "-")]
        if short:
            flags.append("-" + short)

        if o.kind == "sequence of str":
            parser.add_argument(
                *flags,
                action="append",
                dest=optname,
                help=o.help + " May be passed multiple times.",
                metavar=metavar,
                choices=o.choices,
            )
        else:
            parser.add_argument(
                *flags,
                type={"int": int, "optional float": float}.get(o.kind, str),
                dest=optname,
                help=o.help,
                metavar=metavar,
                choices=o.choices,
            )


def dump_defaults(opts: OptManager, out: TextIO) -> None:
    """
    Write all options with their defaults as YAML, each preceded by its help text.
    """
    data = ruamel.yaml.comments.CommentedMap()
    for name in sorted(opts._options):
        o = opts._options[name]
        data[name] = o.default
        if o.choices:
            txt = f"{o.help} Valid values are {', '.join(repr(c) for c in o.choices)}."
        else:
            txt = f"{o.help} Type {o.kind}."
        data.yaml_set_comment_before_after_key(
            name, before="\n" + "\n".join(textwrap.wrap(txt))
        )
    ruamel.yaml.YAML().dump(data, out)


def parse(text: str) -> dict[str, Any]:
    """
    *Raises:*
     - ConfigError, if the text is not a YAML mapping.
    """
    if not text:
        return {}
    yaml = ruamel.yaml.YAML(typ="safe", pure=True)
    try:
        data = yaml.load(text)
    except ruamel.yaml.error.MarkedYAMLError as e:
        mark = e.problem_mark
        raise exceptions.ConfigError(
            f"Config error at line {mark.line + 1}:\n{mark.get_snippet()}\n{e.problem or ''}"
        )
    except ruamel.yaml.error.YAMLError:
        raise exceptions.ConfigError("Could not parse options.")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise exceptions.ConfigError("Config error - no keys found.")
    return data


def load(opts: OptManager, text: str, cwd: Path | str | None = None) -> None:
    """
    Apply a YAML config on top of the current options. Unknown keys are deferred.
    Relative certificate and key paths are resolved against `cwd`.
    """
    data = parse(text)
    if cwd is not None:
        for key in ("cert_path", "key_path"):
            if isinstance(data.get(key), str):
                data[key] = str(relative_path(data[key], relative_to=cwd))
    opts.update_defer(**data)


def load_paths(opts: OptManager, *paths: Path | str) -> None:
    """
    Load config files in order, later files win. Files that don't exist are skipped.

    *Raises:*
     - ConfigError, if a file cannot be read or parsed.
    """
    for p in paths:
        p = Path(p).expanduser()
        if not p.is_file():
            continue
        try:
            load(opts, p.read_text(encoding="utf8"), cwd=p.absolute().parent)
        except (UnicodeDecodeError, exceptions.ConfigError) as e:
            raise exceptions.ConfigError(f"Error reading {p}: {e}")


def relative_path(path: Path | str, *, relative_to: Path | str) -> Path:
    """
    Resolve a path from a config file against the directory of that file,
    not against the working directory.
    """
    path = Path(path).expanduser()
    if path.is_absolute():
        return path
    return (Path(relative_to) / path).absolute()
