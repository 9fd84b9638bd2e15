#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
STDL 状态机命令行工具

子命令:
    check FILE                      输出诊断，存在错误时退出码为 1
    model FILE [--format json|yaml] 输出扁平化状态机
    diagram FILE                    输出 Mermaid 状态图
    debug FILE                      交互式调试

运行方式:
    python apps/run_debugger.py debug samples/door.stdl

调试命令:
    <event> [guard]   触发事件，守卫可写在方括号内
    choose <n>        在歧义候选中选择第 n 个
    states            查看当前状态可用的事件
    log               查看会话日志
    reset             回到初始状态
    exit              退出
"""
import argparse
import json
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import yaml

# 添加项目路径
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from config.logging_config import setup_logging
from config.settings import settings
from fsm.session import DebugSession, LogEntry
from fsm.states import ChoiceRequired, FlattenedStateMachine, StepError, StepOutcome, StepWarning, TransitionTaken
from stdl.analysis import analyze
from stdl.diagnostics import Diagnostic
from stdl.mermaid import render_mermaid
from stdl.transformer import transform_model


EXIT_COMMANDS = {"exit", "quit", "q"}


# ============================================================
# 输出函数（无颜色无emoji）
# ============================================================

def print_header(text: str):
    print(f"\n{'='*65}")
    print(f" {text}")
    print(f"{'='*65}\n")


def print_subheader(text: str):
    print(f"\n--- {text} ---")


def print_warning(text: str):
    print(f"  [警告] {text}")


def print_error(text: str):
    print(f"  [错误] {text}")


def print_info(text: str):
    print(f"  [信息] {text}")


def print_log_entry(entry: LogEntry):
    print(f"  {entry.sequence:>4} {entry.timestamp} [{entry.type.value:<6}] {entry.message}")


def format_diagnostic(path: str, diagnostic: Diagnostic) -> str:
    start = diagnostic.range.start
    severity = diagnostic.severity.name.lower()
    return f"{path}:{start.line + 1}:{start.character + 1}: {severity}: {diagnostic.message} [{diagnostic.source}]"


def read_document(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def build_model(path: str) -> Optional[FlattenedStateMachine]:
    analysis = analyze(read_document(path), max_initial_hops=settings.MAX_INITIAL_HOPS)
    return transform_model(analysis.states, settings.MAX_INITIAL_HOPS)


# ============================================================
# 子命令
# ============================================================

def cmd_check(args: argparse.Namespace) -> int:
    analysis = analyze(read_document(args.file), settings.MAX_NUMBER_OF_PROBLEMS, settings.MAX_INITIAL_HOPS)
    for diagnostic in analysis.diagnostics:
        print(format_diagnostic(args.file, diagnostic))
    errors = sum(1 for d in analysis.diagnostics if d.is_error)
    print(f"{len(analysis.diagnostics)} diagnostics, {errors} errors")
    return 1 if errors else 0


def cmd_model(args: argparse.Namespace) -> int:
    analysis = analyze(read_document(args.file), max_initial_hops=settings.MAX_INITIAL_HOPS)
    machine = transform_model(analysis.states, settings.MAX_INITIAL_HOPS)
    if machine is None:
        print_error("无法构建状态机（文档为空或 Initial 链异常）")
        for diagnostic in analysis.diagnostics:
            if diagnostic.is_error:
                print_error(format_diagnostic(args.file, diagnostic))
        return 1
    data = machine.to_dict()
    if args.format == "yaml":
        print(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), end="")
    else:
        print(json.dumps(data, ensure_ascii=False, indent=2))
    return 0


def cmd_diagram(args: argparse.Namespace) -> int:
    print(render_mermaid(analyze(read_document(args.file)).states), end="")
    return 0


# ============================================================
# 交互式调试
# ============================================================

def parse_event_command(command: str) -> Tuple[str, Optional[str]]:
    """
    拆分事件命令

    "open [locked == false]" -> ("open", "locked == false")
    "open locked"            -> ("open", "locked")
    """
    event, _, rest = command.strip().partition(" ")
    guard = rest.strip()
    if guard.startswith("[") and guard.endswith("]"):
        guard = guard[1:-1].strip()
    return event, guard or None


def print_outcome(outcome: StepOutcome, session: DebugSession):
    if isinstance(outcome, TransitionTaken):
        for effect in outcome.effects:
            print(f"  {effect.describe()}")
        print_info(f"当前状态: {session.current_state}")
    elif isinstance(outcome, ChoiceRequired):
        print_warning("多个转换同时匹配，请使用 'choose <n>' 选择:")
        for number, choice in enumerate(outcome.choices, start=1):
            guard = f" [{choice.guard}]" if choice.guard else ""
            print(f"    {number}. {choice.event}{guard} -> {choice.target}")
    elif isinstance(outcome, StepWarning):
        print_warning(outcome.message)
    elif isinstance(outcome, StepError):
        print_error(outcome.message)
        if session.corrupted:
            print_info("会话已损坏，请输入 'reset'")


def print_available_events(machine: FlattenedStateMachine, session: DebugSession):
    state = machine.get(session.current_state) if session.current_state else None
    if state is None:
        print_warning("当前状态不在模型中")
        return
    print_subheader(f"{state.name} 可用事件")
    if not state.events:
        print_info("没有可用事件（终态）")
    for event in state.events:
        for transition in state.transitions[event]:
            guard = f" [{transition.guard}]" if transition.guard else ""
            print(f"  - {event}{guard} -> {transition.target}")


def run_debug_loop(path: str, input_fn: Callable[[str], str] = input) -> int:
    """
    交互式调试主循环

    每条命令都重新读取并构建文档，调试过程中编辑文件会立即生效。
    """
    session = DebugSession(document_id=path, session_id="cli", max_initial_hops=settings.MAX_INITIAL_HOPS)
    machine = build_model(path)
    if session.start(machine) is None:
        print_error("无法构建状态机（文档为空或 Initial 链异常）")
        return 1

    print_header(f"STDL 调试器: {path}")
    for entry in session.log:
        print_log_entry(entry)
    print_info("命令: '<event> [guard]', 'choose <n>', 'states', 'log', 'clear', 'reset', 'exit'")

    while True:
        try:
            command = input_fn(f"\n{session.current_state}> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n")
            break

        if not command:
            continue
        if command.lower() in EXIT_COMMANDS:
            break
        if command == "clear":
            print_info(f"已清空 {session.clear_log()} 条日志")
            continue

        machine = build_model(path)
        if machine is None:
            print_error("无法构建状态机（文档为空或 Initial 链异常）")
            continue

        if command == "log":
            print_subheader("会话日志")
            for entry in session.log:
                print_log_entry(entry)
        elif command == "states":
            print_available_events(machine, session)
        elif command == "reset":
            session.reset(machine)
            print_info(f"已重置，当前状态: {session.current_state}")
        elif command.startswith("choose "):
            print_outcome(choose_by_number(session, machine, command), session)
        else:
            event, guard = parse_event_command(command)
            print_outcome(session.execute(machine, event, guard), session)

    print_info("调试结束")
    return 0


def choose_by_number(session: DebugSession, machine: FlattenedStateMachine, command: str) -> StepOutcome:
    pending = session.pending_choice
    if pending is None:
        return StepError("No pending choice to resolve")
    try:
        number = int(command.split()[1])
    except (IndexError, ValueError):
        return StepError(f"Invalid choice: {command}")
    if not 1 <= number <= len(pending.targets):
        return StepError(f"Choice must be between 1 and {len(pending.targets)}")
    return session.resolve_choice(machine, pending.targets[number - 1])


def cmd_debug(args: argparse.Namespace) -> int:
    return run_debug_loop(args.file)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="STDL state machine tools.")
    parser.add_argument("--log-level", default=None, help="Log level (default from settings)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Print diagnostics for a document")
    check.add_argument("file")
    check.set_defaults(func=cmd_check)

    model = subparsers.add_parser("model", help="Print the flattened state machine")
    model.add_argument("file")
    model.add_argument("--format", choices=["json", "yaml"], default="json")
    model.set_defaults(func=cmd_model)

    diagram = subparsers.add_parser("diagram", help="Print a Mermaid state diagram")
    diagram.add_argument("file")
    diagram.set_defaults(func=cmd_diagram)

    debug = subparsers.add_parser("debug", help="Interactively step through a state machine")
    debug.add_argument("file")
    debug.set_defaults(func=cmd_debug)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level or "WARNING", stream=sys.stderr)
    try:
        return args.func(args)
    except FileNotFoundError as exc:
        print_error(f"文件不存在: {exc.filename}")
        return 2


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n")
        print_info("用户中断")
        sys.exit(0)
