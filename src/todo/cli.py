#!/usr/bin/env python3
"""
TODO管理CLI - サーバーと同じサービス層を直接操作する運用向けインターフェース

Usage:
    python -m src.todo.cli users-add --email EMAIL [--name NAME] [--role admin|user]
    python -m src.todo.cli users-list
    python -m src.todo.cli session-create --user-id USER_ID
    python -m src.todo.cli --as USER_ID list [--exclude-admin-todos] [--format json|text]
    python -m src.todo.cli --as USER_ID add --text "テキスト" [--private]
    python -m src.todo.cli --as USER_ID update --id ID [--text T] [--status S] [--shared true|false] [--hidden true|false]
    python -m src.todo.cli --as USER_ID delete --id ID
    python -m src.todo.cli --as USER_ID reorder --ids ID1 ID2 ...
    python -m src.todo.cli --as ADMIN_ID defaults-list
    python -m src.todo.cli --as ADMIN_ID defaults-add --text "テキスト"
    python -m src.todo.cli --as ADMIN_ID defaults-delete --id ID
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from src.packup.config import Config
from src.users import User, UserRole, determine_role

from .exceptions import TodoError
from .models import Actor, TodoItem
from .repository import TodoRepository
from .service import TodoService


def format_todo_text(todo: TodoItem) -> str:
    """Todoアイテムをテキスト形式で整形"""
    flags = []
    if todo.is_default_task:
        flags.append("default")
    if todo.shared_with_admin:
        flags.append("shared")
    if todo.hidden_from_user:
        flags.append("hidden")
    position = "-" if todo.position is None else str(todo.position)
    return f"{position}. [{todo.id}] {todo.status.value} | {todo.text} | {','.join(flags) or '-'}"


def format_todo_json(todo: TodoItem) -> Dict[str, Any]:
    """Todoアイテムを辞書形式に変換"""
    return {
        "id": todo.id,
        "text": todo.text,
        "status": todo.status.value,
        "created": todo.created,
        "position": todo.position,
        "is_default_task": todo.is_default_task,
        "shared_with_admin": todo.shared_with_admin,
        "hidden_from_user": todo.hidden_from_user,
        "created_by_user_id": todo.created_by_user_id,
        "user_id": todo.user_id,
    }


def format_user_json(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "avatar_url": user.avatar_url,
        "role": user.role.value,
        "created_at": user.created_at,
    }


def parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value.lower() in ("1", "true", "yes", "on")


def print_items(items: List[TodoItem], output_format: str) -> None:
    if output_format == "json":
        print(json.dumps([format_todo_json(item) for item in items], ensure_ascii=False))
    elif not items:
        print("TODOは登録されていません。")
    else:
        for item in items:
            print(format_todo_text(item))


def print_item(item: TodoItem, output_format: str, label: str) -> None:
    if output_format == "json":
        print(json.dumps(format_todo_json(item), ensure_ascii=False))
    else:
        print(f"{label}: {format_todo_text(item)}")


def resolve_actor(service: TodoService, user_id: Optional[str]) -> Optional[Actor]:
    if not user_id:
        print("Error: --as でユーザーIDを指定してください。", file=sys.stderr)
        return None
    user = service.users.get_user(user_id)
    if user is None:
        print(f"Error: ユーザー {user_id} が見つかりません。", file=sys.stderr)
        return None
    return Actor(user_id=user.id, role=user.role)


def cmd_users_add(
    service: TodoService,
    config: Config,
    email: str,
    name: str,
    role: Optional[str],
    output_format: str,
) -> int:
    """ユーザーを登録（ロール未指定時は管理者メール設定から判定）"""
    user_role = UserRole(role) if role else determine_role(email, config.admin_emails)
    try:
        user = service.users.create_user(email=email, name=name, role=user_role)
    except Exception as exc:
        print(f"Error: ユーザー登録に失敗しました: {exc}", file=sys.stderr)
        return 1
    if output_format == "json":
        print(json.dumps(format_user_json(user), ensure_ascii=False))
    else:
        print(f"登録しました: [{user.id}] {user.email} ({user.role.value})")
    return 0


def cmd_users_list(service: TodoService, output_format: str) -> int:
    users = service.users.list_users(exclude_admins=False)
    if output_format == "json":
        print(json.dumps([format_user_json(user) for user in users], ensure_ascii=False))
    else:
        for user in users:
            print(f"[{user.id}] {user.email} ({user.role.value})")
    return 0


def cmd_session_create(service: TodoService, config: Config, user_id: str) -> int:
    if service.users.get_user(user_id) is None:
        print(f"Error: ユーザー {user_id} が見つかりません。", file=sys.stderr)
        return 1
    print(service.users.create_session(user_id, ttl_hours=config.session.ttl_hours))
    return 0


def run_todo_command(service: TodoService, actor: Actor, args: argparse.Namespace) -> int:
    """Todo系コマンドを実行。ドメインエラーは終了コード1で報告する。"""
    try:
        if args.command == "list":
            print_items(service.list_todos(actor, args.exclude_admin_todos), args.format)
        elif args.command == "get":
            item = service.get_todo(actor, args.id)
            if args.format == "json":
                print(json.dumps(format_todo_json(item), ensure_ascii=False))
            else:
                print(format_todo_text(item))
        elif args.command == "add":
            item = service.create_todo(actor, args.text, shared_with_admin=not args.private)
            print_item(item, args.format, "追加しました")
        elif args.command == "update":
            patch: Dict[str, Any] = {}
            if args.text is not None:
                patch["text"] = args.text
            if args.status is not None:
                patch["status"] = args.status
            if args.shared is not None:
                patch["shared_with_admin"] = parse_bool(args.shared)
            if args.hidden is not None:
                patch["hidden_from_user"] = parse_bool(args.hidden)
            item = service.update_todo(actor, args.id, patch)
            print_item(item, args.format, "更新しました")
        elif args.command == "delete":
            service.delete_todo(actor, args.id)
            if args.format == "json":
                print(json.dumps({"success": True, "id": args.id}, ensure_ascii=False))
            else:
                print(f"削除しました: ID {args.id}")
        elif args.command == "reorder":
            service.reorder_todos(actor, args.ids)
            print_items(service.list_todos(actor), args.format)
        elif args.command == "defaults-list":
            print_items(service.list_default_tasks(actor), args.format)
        elif args.command == "defaults-add":
            item = service.create_default_task(actor, args.text)
            print_item(item, args.format, "追加しました")
        elif args.command == "defaults-delete":
            service.delete_default_task(actor, args.id)
            if args.format == "json":
                print(json.dumps({"success": True, "id": args.id}, ensure_ascii=False))
            else:
                print(f"削除しました: ID {args.id}")
        else:
            print(f"Error: 不明なコマンド: {args.command}", file=sys.stderr)
            return 1
    except TodoError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="TODO管理CLI - サービス層を直接操作するインターフェース",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="SQLiteデータベースファイルのパス（デフォルト: data/packup.db）",
    )
    parser.add_argument("--as", dest="actor", help="操作するユーザーのID")

    format_parent = argparse.ArgumentParser(add_help=False)
    format_parent.add_argument(
        "--format",
        choices=["json", "text"],
        default="text",
        help="出力フォーマット（デフォルト: text）",
    )

    subparsers = parser.add_subparsers(dest="command", help="実行するコマンド", required=True)

    parser_users_add = subparsers.add_parser(
        "users-add", parents=[format_parent], help="ユーザーを登録"
    )
    parser_users_add.add_argument("--email", required=True, help="メールアドレス")
    parser_users_add.add_argument("--name", default="", help="表示名")
    parser_users_add.add_argument("--role", choices=["admin", "user"], help="ロール")

    subparsers.add_parser("users-list", parents=[format_parent], help="ユーザー一覧")

    parser_session = subparsers.add_parser("session-create", help="セッショントークンを発行")
    parser_session.add_argument("--user-id", required=True, help="ユーザーID")

    parser_list = subparsers.add_parser("list", parents=[format_parent], help="TODOリストを表示")
    parser_list.add_argument(
        "--exclude-admin-todos", action="store_true", help="デフォルトタスクを除外"
    )

    parser_get = subparsers.add_parser("get", parents=[format_parent], help="特定のTODOを取得")
    parser_get.add_argument("--id", required=True, help="取得するTODOのID")

    parser_add = subparsers.add_parser("add", parents=[format_parent], help="新しいTODOを追加")
    parser_add.add_argument("--text", required=True, help="TODOのテキスト")
    parser_add.add_argument("--private", action="store_true", help="管理者と共有しない")

    parser_update = subparsers.add_parser(
        "update", parents=[format_parent], help="既存のTODOを更新"
    )
    parser_update.add_argument("--id", required=True, help="更新するTODOのID")
    parser_update.add_argument("--text", help="新しいテキスト")
    parser_update.add_argument(
        "--status", choices=["pending", "in-progress", "done"], help="新しいステータス"
    )
    parser_update.add_argument("--shared", help="管理者と共有するか（true/false）")
    parser_update.add_argument("--hidden", help="デフォルトタスクを非表示にするか（true/false）")

    parser_delete = subparsers.add_parser("delete", parents=[format_parent], help="TODOを削除")
    parser_delete.add_argument("--id", required=True, help="削除するTODOのID")

    parser_reorder = subparsers.add_parser(
        "reorder", parents=[format_parent], help="TODOを並び替え（全IDを指定）"
    )
    parser_reorder.add_argument("--ids", nargs="+", required=True, help="新しい順序のID")

    subparsers.add_parser(
        "defaults-list", parents=[format_parent], help="デフォルトタスク一覧（管理者）"
    )
    parser_defaults_add = subparsers.add_parser(
        "defaults-add", parents=[format_parent], help="デフォルトタスクを追加（管理者）"
    )
    parser_defaults_add.add_argument("--text", required=True, help="テンプレートのテキスト")
    parser_defaults_delete = subparsers.add_parser(
        "defaults-delete", parents=[format_parent], help="デフォルトタスクを削除（管理者）"
    )
    parser_defaults_delete.add_argument("--id", required=True, help="削除するタスクのID")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLIエントリポイント"""
    args = build_parser().parse_args(argv)
    config = Config.from_yaml()

    repo = TodoRepository(db_path=args.db_path if args.db_path else None)
    service = TodoService(repo)

    if args.command == "users-add":
        return cmd_users_add(service, config, args.email, args.name, args.role, args.format)
    if args.command == "users-list":
        return cmd_users_list(service, args.format)
    if args.command == "session-create":
        return cmd_session_create(service, config, args.user_id)

    actor = resolve_actor(service, args.actor)
    if actor is None:
        return 1
    return run_todo_command(service, actor, args)


if __name__ == "__main__":
    sys.exit(main())
