"""EyeCare Insights CLI.

Terminal front-end for the same questions the web pages ask: free-form Q&A,
myths vs facts, recent research and age-specific advice.
"""

import argparse
import getpass
import logging
import sys
from typing import List, Optional

import requests

from agent.core import AGE_GROUPS, EyeCareAgent, find_age_group
from agent.model_client import INVALID_KEY_FORMAT_MESSAGE, validate_api_key
from cli.config import CLIConfig, load_config, mask_api_key, resolve_api_key, save_config


def _add_common_key_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--api-key",
        help="Override API key (default is taken from the local config or PERPLEXITY_API_KEY).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eyecare", description="EyeCare Insights CLI")
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="cmd")

    p_login = sub.add_parser("login", help="Store a Perplexity API key locally")
    p_login.add_argument("--api-key", help="Provide the key directly (otherwise prompt).")
    p_login.add_argument(
        "--stdin",
        action="store_true",
        help="Read the API key from stdin (useful for non-interactive setups).",
    )

    sub.add_parser("logout", help="Remove the stored API key")

    p_config = sub.add_parser("config", help="Show current CLI configuration")
    p_config.add_argument("--all", action="store_true", help="Show advanced fields.")

    p_ask = sub.add_parser("ask", help="Ask an eye health question")
    _add_common_key_flags(p_ask)
    p_ask.add_argument("-m", "--message", help="Ask a single question and exit (otherwise interactive).")

    p_myths = sub.add_parser("myths", help="List common eye health myths and the facts")
    _add_common_key_flags(p_myths)

    p_research = sub.add_parser("research", help="Summarise recent eye health research")
    _add_common_key_flags(p_research)

    p_advice = sub.add_parser("advice", help="Get eye care advice for an age group")
    _add_common_key_flags(p_advice)
    p_advice.add_argument(
        "--group",
        required=True,
        choices=[g.id for g in AGE_GROUPS],
        help="Age group to ask about.",
    )

    p_serve = sub.add_parser("serve", help="Run the web application")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)

    return parser


def _cmd_login(cfg: CLIConfig, api_key_arg: Optional[str], *, stdin: bool) -> int:
    if stdin:
        key = sys.stdin.read().strip()
    else:
        key = (api_key_arg or "").strip() or getpass.getpass("Perplexity API key: ").strip()
    if not key:
        print("No API key provided.", file=sys.stderr)
        return 1
    if not validate_api_key(key):
        print(INVALID_KEY_FORMAT_MESSAGE, file=sys.stderr)
        return 1
    save_config(CLIConfig(**{**cfg.__dict__, "api_key": key}))
    print("API key stored.")
    return 0


def _cmd_logout(cfg: CLIConfig) -> int:
    if not cfg.api_key:
        print("No API key is currently stored.")
        return 0
    save_config(CLIConfig(**{**cfg.__dict__, "api_key": None}))
    print("API key removed.")
    return 0


def _cmd_config(cfg: CLIConfig, *, show_all: bool) -> int:
    status = "Connected" if validate_api_key(cfg.api_key) else "Not configured"
    print("EyeCare Insights CLI config:")
    print(f"- api_key: {mask_api_key(cfg.api_key)}")
    print(f"- status: {status}")
    if show_all:
        print(f"- api_url: {cfg.api_url}")
        print(f"- model: {cfg.model}")
        print(f"- timeout_s: {cfg.timeout_s}")
    return 0


def _make_agent(cfg: CLIConfig, api_key_arg: Optional[str]) -> EyeCareAgent | None:
    api_key = resolve_api_key(api_key_arg, cfg.api_key)
    if not api_key:
        print("Missing API key. Run `eyecare login` or set PERPLEXITY_API_KEY.", file=sys.stderr)
        return None
    if not validate_api_key(api_key):
        print(INVALID_KEY_FORMAT_MESSAGE, file=sys.stderr)
        return None
    return EyeCareAgent.from_api_key(api_key, base_url=cfg.api_url, model=cfg.model, timeout=cfg.timeout_s)


def _cmd_ask(cfg: CLIConfig, *, api_key_arg: Optional[str], message: Optional[str]) -> int:
    agent = _make_agent(cfg, api_key_arg)
    if agent is None:
        return 1

    def ask_and_print(question: str) -> bool:
        try:
            answer = agent.ask_question(question)
        except (RuntimeError, requests.RequestException) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return False
        print(answer)
        return True

    if message:
        return 0 if ask_and_print(message) else 1

    print("EyeCare Insights Q&A (Ctrl-D or /exit to quit).")
    while True:
        try:
            question = input("> ").strip()
        except EOFError:
            print()
            break
        if not question:
            continue
        if question in {"/exit", "/quit"}:
            break
        if not ask_and_print(question):
            return 1
    return 0


def _cmd_myths(cfg: CLIConfig, *, api_key_arg: Optional[str]) -> int:
    agent = _make_agent(cfg, api_key_arg)
    if agent is None:
        return 1
    try:
        myths = agent.get_myths()
    except (RuntimeError, requests.RequestException) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not myths:
        print("No myths could be extracted from the answer.")
        return 0
    for i, item in enumerate(myths, start=1):
        print(f"{i}. Myth: {item.myth}")
        if item.fact:
            print(f"   Fact: {item.fact}")
        explanation = item.explanation.strip()
        if explanation:
            print(f"   {explanation}")
    return 0


def _cmd_research(cfg: CLIConfig, *, api_key_arg: Optional[str]) -> int:
    agent = _make_agent(cfg, api_key_arg)
    if agent is None:
        return 1
    try:
        findings = agent.get_research()
    except (RuntimeError, requests.RequestException) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not findings:
        print("No research findings could be extracted from the answer.")
        return 0
    for i, item in enumerate(findings, start=1):
        print(f"[{i}] {item.title} ({item.source}, {item.date})")
        print(f"    {item.summary}")
        if item.url:
            print(f"    {item.url}")
    return 0


def _cmd_advice(cfg: CLIConfig, *, api_key_arg: Optional[str], group_id: str) -> int:
    group = find_age_group(group_id)
    if group is None:
        print(f"Unknown age group: {group_id}", file=sys.stderr)
        return 2
    agent = _make_agent(cfg, api_key_arg)
    if agent is None:
        return 1
    try:
        advice = agent.get_age_specific_advice(group.name)
    except (RuntimeError, requests.RequestException) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"{group.name}\n")
    print(advice)
    return 0


def _cmd_serve(*, host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("webapp.backend:app", host=host, port=port)
    return 0


def main(argv: List[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.version:
        print("EyeCare Insights CLI")
        return 0

    cfg = load_config()

    if args.cmd == "login":
        return _cmd_login(cfg, args.api_key, stdin=bool(getattr(args, "stdin", False)))
    if args.cmd == "logout":
        return _cmd_logout(cfg)
    if args.cmd == "config":
        return _cmd_config(cfg, show_all=bool(getattr(args, "all", False)))
    if args.cmd == "ask":
        return _cmd_ask(cfg, api_key_arg=args.api_key, message=getattr(args, "message", None))
    if args.cmd == "myths":
        return _cmd_myths(cfg, api_key_arg=args.api_key)
    if args.cmd == "research":
        return _cmd_research(cfg, api_key_arg=args.api_key)
    if args.cmd == "advice":
        return _cmd_advice(cfg, api_key_arg=args.api_key, group_id=args.group)
    if args.cmd == "serve":
        return _cmd_serve(host=args.host, port=int(args.port))

    parser.print_help()
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
