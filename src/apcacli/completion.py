"""Bash completion.

Generates a bash completion script for ``apcacli`` from its ``argparse``
command tree, so the script never drifts from the actual commands.

Usage:
    apcacli-shell-complete > /etc/bash_completion.d/apcacli
    apcacli-shell-complete my-apcacli > ~/.local/share/bash-completion/completions/my-apcacli
"""

from __future__ import annotations

import argparse
import re
import sys
from typing import Optional, TextIO

from apcacli.args import build_parser

CommandPath = tuple[str, ...]


def command_tree(parser: argparse.ArgumentParser) -> dict[CommandPath, list[str]]:
    """Map every (sub)command path to the words that may follow it.

    The words are subcommand names and aliases, option strings, and the
    choices of positional arguments. The top level parser has the empty
    path.
    """
    tree: dict[CommandPath, list[str]] = {}

    def visit(current: argparse.ArgumentParser, path: CommandPath) -> None:
        words: list[str] = []
        for action in current._actions:
            if isinstance(action, argparse._SubParsersAction):
                for name, child in action.choices.items():
                    words.append(name)
                    visit(child, path + (name,))
            elif action.option_strings:
                words.extend(action.option_strings)
            elif action.choices:
                words.extend(str(getattr(choice, "value", choice)) for choice in action.choices)
        tree[path] = words

    visit(parser, ())
    return tree


def _function_name(command: str) -> str:
    return "_" + re.sub(r"\W", "_", command)


def _key(path: CommandPath) -> str:
    return "".join(f" {word}" for word in path)


def bash_script(command: str = "apcacli", parser: Optional[argparse.ArgumentParser] = None) -> str:
    """Render the completion script registering ``command``."""
    tree = command_tree(parser or build_parser())
    function = _function_name(command)
    subcommands = "|".join(f'"{_key(path)}"' for path in tree if path)
    cases = "\n".join(
        f'        "{_key(path)}") words="{" ".join(words)}" ;;'
        for path, words in tree.items()
    )
    return f"""\
# bash completion for {command}
{function}() {{
    local cur word words path i
    cur="${{COMP_WORDS[COMP_CWORD]}}"
    path=""
    for ((i = 1; i < COMP_CWORD; i++)); do
        word="${{COMP_WORDS[i]}}"
        case "${{path}} ${{word}}" in
            {subcommands}) path="${{path}} ${{word}}" ;;
        esac
    done
    words=""
    case "${{path}}" in
{cases}
    esac
    COMPREPLY=($(compgen -W "${{words}}" -- "${{cur}}"))
}}
complete -F {function} {command}
"""


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="apcacli-shell-complete",
        description="Generate a bash completion script for apcacli.",
    )
    parser.add_argument(
        "command", nargs="?", default="apcacli",
        help="The command for which to generate the bash completion script "
             "(default: apcacli).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None, out: Optional[TextIO] = None) -> int:
    args = parse_args(argv)
    (out or sys.stdout).write(bash_script(args.command))
    return 0


if __name__ == "__main__":
    sys.exit(main())
