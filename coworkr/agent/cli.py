from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from coworkr.config.settings import DEFAULT_CALLER_ID, get_log_level


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="coworkr")
    parser.add_argument("--log-level", default=None, help="Override COWORKR_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    say_parser = sub.add_parser("say", help="Run one conversational turn and print the reply")
    say_parser.add_argument("text", help="Utterance text")
    say_parser.add_argument("--caller-id", default=DEFAULT_CALLER_ID, help="Caller identity")
    say_parser.add_argument("--demo", action="store_true", help="Use in-memory collaborators with demo records")
    say_parser.add_argument("--voice", action="store_true", help="Also synthesize the reply")
    say_parser.add_argument("--json", action="store_true", help="Print the full turn result as JSON")

    serve_parser = sub.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    _load_env()
    _configure_logging(args.log_level or get_log_level())

    if args.command == "say":
        _command_say(args)
        return
    if args.command == "serve":
        _command_serve(args)
        return


def _command_say(args: argparse.Namespace) -> None:
    from coworkr.agent.conversation import build_engine

    engine = build_engine(backend="memory" if args.demo else None)
    result = asyncio.run(engine.handle_turn(args.text, args.caller_id, args.voice))
    if args.json:
        print(
            json.dumps(
                {
                    "text": result.reply_text,
                    "intent": result.intent_name,
                    "actions": result.actions_taken,
                    "audioBytes": len(result.audio) if result.audio else 0,
                },
                indent=2,
                default=str,
            )
        )
        return
    print(result.reply_text)


def _command_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("coworkr.infrastructure.api:app", host=args.host, port=args.port, log_level="info")


def _load_env() -> None:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(level=getattr(logging, level_name.upper(), logging.INFO))


if __name__ == "__main__":
    main()
