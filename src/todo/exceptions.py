"""Todoサービスのカスタム例外定義

ValidationError: 入力不正（空テキスト、並び替え集合の不一致など）。状態は変更されない。
NotFoundError: 閲覧者のスコープから見えないID。非表示と不存在は区別しない。
ForbiddenError: レコードは見えるが、そのフィールド/操作の権限がない。
"""


class TodoError(Exception):
    """Todoサービス基底例外"""

    pass


class ValidationError(TodoError):
    """入力検証エラー"""

    pass


class NotFoundError(TodoError):
    """対象が見つからない（または見えない）"""

    pass


class ForbiddenError(TodoError):
    """権限エラー"""

    pass
