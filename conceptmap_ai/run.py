from __future__ import annotations

import argparse
import sys

from rich.console import Console
from rich.markup import escape

from conceptmap_ai.config import load_settings
from conceptmap_ai.errors import ConceptMapAIError
from conceptmap_ai.llm import ChatMessage, build_llm
from conceptmap_ai.logging_config import init_logging
from conceptmap_ai.suggestions import generate_suggestions
from conceptmap_ai.utils.run_log import append_event, init_run_log, make_run_id


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="conceptmap-ai")
    parser.add_argument(
        "--no-log",
        action="store_true",
        help="不写运行日志（默认会写入 logs/run_*.jsonl）",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    suggest = sub.add_parser("suggest", help="为概念节点生成最多 5 个相关概念")
    suggest.add_argument("node", type=str, help="节点内容，例如：光合作用")

    chat = sub.add_parser("chat", help="向模型发送一条消息")
    chat.add_argument("prompt", type=str)
    chat.add_argument("--system", type=str, default=None, help="可选的 system 提示")
    chat.add_argument("--model", type=str, default=None, help="覆盖默认模型 ID")
    chat.add_argument("--temperature", type=float, default=0.7)
    chat.add_argument("--stream", action="store_true", help="边生成边输出")
    return parser


def main(argv: list[str] | None = None) -> int:
    # Best-effort fix for Windows terminals defaulting to GBK.
    try:
        sys.stdout.reconfigure(encoding="utf-8")
        sys.stderr.reconfigure(encoding="utf-8")
    except (AttributeError, OSError, ValueError):
        pass

    args = build_parser().parse_args(argv)

    console = Console()
    settings = load_settings()
    init_logging(settings.log_level)
    llm = build_llm(settings)

    log_paths = None if args.no_log else init_run_log(settings.log_dir, make_run_id())

    if args.command == "suggest":
        suggestions = generate_suggestions(llm, args.node)
        console.rule("概念建议")
        for s in suggestions:
            console.print(f"- {s}")
        if log_paths:
            append_event(log_paths, "suggest", node_chars=len(args.node), suggestions=suggestions)
        return 0

    messages: list[ChatMessage] = []
    if args.system:
        messages.append(ChatMessage("system", args.system))
    messages.append(ChatMessage("user", args.prompt))

    try:
        if args.stream:
            text = llm.chat_stream(
                messages,
                lambda delta: console.print(delta, end="", markup=False, highlight=False),
                model=args.model,
                temperature=args.temperature,
            )
            console.print()
        else:
            text = llm.chat(messages, model=args.model, temperature=args.temperature)
            console.print(text, markup=False, highlight=False)
    except (ConceptMapAIError, ValueError) as exc:
        console.print(f"[bold red]error[/bold red]: {escape(str(exc))}")
        if log_paths:
            append_event(log_paths, "error", command="chat", error=str(exc), kind=type(exc).__name__)
        return 1

    if log_paths:
        append_event(
            log_paths,
            "chat",
            stream=bool(args.stream),
            model=args.model,
            prompt_chars=len(args.prompt),
            reply=text,
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
