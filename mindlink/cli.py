#!/usr/bin/env python3
"""
mindlink CLI — your persistent command-line AI partner.

    COMMAND         ALIASES     WHAT IT DOES
    -------         -------     ----------------------------------
    (--prompt)                  Ask one question and exit
    chat            repl        Interactive chat
    memory-show     history     Print the last N turns
    memory-clear    forget      Delete the whole conversation log
    export          dump        Export the log to JSON
    stats           info        Show config and log statistics
"""

import argparse
import asyncio
import json
import logging
import sys

from mindlink import __version__
from mindlink.errors import CommitError, MindlinkError

logger = logging.getLogger(__name__)

PROMPT = "mindlink> "


def _fail(message: str):
    print(f"  ✗  {message}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Setup shared by every command
# ---------------------------------------------------------------------------

def _load(args):
    """Resolve config and settings from flags, environment and config.yaml."""
    from mindlink.config import load_config, resolve_settings, setup_logging

    cfg = load_config(args.config)
    setup_logging(cfg, verbose=args.verbose)
    settings = resolve_settings(cfg).replace(
        memory_turns=args.memory_turns,
        model=args.model,
    )
    if args.global_memory:
        settings = settings.replace(project_memory=False)
    return settings


def _agent(args):
    from mindlink.agent import Agent
    from mindlink.paths import memory_path

    settings = _load(args)
    path = memory_path(settings.project_memory)
    logger.debug("Memory at %s", path)
    return Agent.from_settings(settings, str(path))


def _ask(agent, prompt: str) -> bool:
    """Run one exchange. Returns False if it failed."""
    try:
        asyncio.run(agent.ask(prompt))
        return True
    except CommitError as e:
        # Reply was already streamed to the terminal
        _fail(str(e))
    except MindlinkError as e:
        print(file=sys.stderr)
        _fail(str(e))
    return False


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_prompt(args) -> int:
    """Ask a single question."""
    agent = _agent(args)
    return 0 if _ask(agent, args.prompt) else 1


def cmd_chat(args) -> int:
    """Interactive chat loop."""
    agent = _agent(args)
    print("  mindlink — type 'exit' or 'quit' to leave.")
    while True:
        try:
            line = input(PROMPT).strip()
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print()
            break
        if not line:
            continue
        if line in ("exit", "quit"):
            break
        try:
            _ask(agent, line)
        except KeyboardInterrupt:
            print("\n  [cancelled]")
    return 0


def cmd_memory_show(args) -> int:
    """Print the last N turns."""
    agent = _agent(args)
    for turn in agent.memory_show(args.limit):
        print(f"[{turn.timestamp.isoformat()}] {turn.role}: {turn.content}")
    return 0


def cmd_memory_clear(args) -> int:
    """Delete every turn in the log."""
    agent = _agent(args)
    agent.memory_clear()
    print("Memory cleared.")
    return 0


def cmd_export(args) -> int:
    """Export the conversation log to JSON."""
    agent = _agent(args)
    data = agent.store.export_all_json()
    indent = 2 if args.pretty else None

    with open(args.output, "w") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)

    print(f"  📦 Exported {len(data)} turns from {agent.store.db_path} to {args.output}")
    return 0


def cmd_stats(args) -> int:
    """Show configuration and log statistics."""
    agent = _agent(args)
    s = agent.settings
    stats = agent.store.get_stats()

    print("  Configuration")
    print(f"  ├─ Provider:     {s.provider}")
    print(f"  ├─ Model:        {s.model}")
    print(f"  ├─ Endpoint:     {s.base_url}")
    print(f"  ├─ API key:      {'set' if s.api_key else 'missing'}")
    print(f"  ├─ Memory turns: {s.memory_turns}")
    print(f"  └─ Retries:      {s.max_retries} (backoff {s.base_backoff_ms}ms)")
    print()
    print("  Memory")
    print(f"  ├─ Database:     {agent.store.db_path}")
    print(f"  ├─ Turns:        {stats['turns']}")
    print(f"  ├─ User:         {stats['user_turns']}")
    print(f"  ├─ Assistant:    {stats['assistant_turns']}")
    print(f"  └─ Span:         {stats['first'] or '-'} → {stats['last'] or '-'}")
    return 0


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under several names."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mindlink",
        description="mindlink — your persistent CLI AI partner.",
        epilog=(
            "Examples:\n"
            "  mindlink --prompt 'hello'\n"
            "  mindlink chat\n"
            "  mindlink memory-show 20"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"mindlink {__version__}",
    )
    parser.add_argument("--prompt", "-p", default=None, help="One-off prompt")
    parser.add_argument(
        "--global-memory", action="store_true",
        help="Use ~/.mindlink instead of project-local ./.mindlink memory",
    )
    parser.add_argument("--memory-turns", type=int, default=None,
                        help="How many recent turns to include as context")
    parser.add_argument("--model", "-m", default=None, help="Override the model name")
    parser.add_argument("--config", "-c", default=None, help="Path to a config.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    _add_command(sub, ["chat", "repl"], "Start an interactive chat", cmd_chat)

    def setup_show(p):
        p.add_argument("limit", nargs="?", type=int, default=50,
                       help="Number of turns to show (default: 50)")

    _add_command(sub, ["memory-show", "history"], "Show the last N turns",
                 cmd_memory_show, setup_show)

    _add_command(sub, ["memory-clear", "forget"], "Clear the conversation log",
                 cmd_memory_clear)

    def setup_export(p):
        p.add_argument("--output", "-o", default="mindlink_export.json", help="Output file")
        p.add_argument("--pretty", action="store_true", help="Pretty-print JSON")

    _add_command(sub, ["export", "dump"], "Export the conversation log to JSON",
                 cmd_export, setup_export)

    _add_command(sub, ["stats", "info"], "Show config and memory stats", cmd_stats)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.prompt:
        func = cmd_prompt
    elif args.command:
        func = args.func
    else:
        print("mindlink — try: mindlink --prompt 'hello'  |  mindlink chat")
        parser.print_help()
        return 0

    try:
        return func(args)
    except MindlinkError as e:
        _fail(str(e))
        return 1
    except FileNotFoundError as e:
        _fail(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
