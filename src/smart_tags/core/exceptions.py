"""smart-tags exceptions.

カスタム例外クラスを定義します。

- ファイル単位で致命的なもの: CorruptStoreError / TagIOError / HeaderParseError
- タグ単位で回復可能なもの: ConflictError / EmptyTagError
"""

from __future__ import annotations

from pathlib import Path


class SmartTagsError(Exception):
    """smart-tags の全例外の基底クラス."""


class CorruptStoreError(SmartTagsError):
    """タグDB（JSON）が読めない、または不変条件に違反している.

    部分的に信用できないDBで処理を続けると静かなデータ損失につながるため、
    タグ処理を始める前に中断します。

    Attributes:
        path: 問題のあったDBファイルのパス
        reason: 具体的な理由
    """

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Corrupt tag database: {self.path} ({reason})")


class ConflictError(SmartTagsError):
    """alias 登録が既存の canonical タグまたは別ターゲットの alias と衝突した.

    Attributes:
        alias: 登録しようとした alias
        target: 登録先の canonical タグ
        existing: 衝突相手（既存 canonical タグ、または既存ターゲット）
    """

    def __init__(self, alias: str, target: str, existing: str, reason: str) -> None:
        self.alias = alias
        self.target = target
        self.existing = existing
        super().__init__(f"Cannot register alias '{alias}' -> '{target}': {reason}")


class EmptyTagError(SmartTagsError):
    """正規化すると空文字になる入力タグ."""

    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Tag is empty after normalization: {raw!r}")


class TagIOError(SmartTagsError):
    """DBまたは文書ファイルの読み書き失敗（OSError をラップ）.

    Attributes:
        path: 対象ファイル
        action: "read" / "write" / "decode"
    """

    def __init__(self, path: Path | str, action: str, cause: Exception) -> None:
        self.path = Path(path)
        self.action = action
        super().__init__(f"Failed to {action} {self.path}: {cause}")


class TextDecodeError(TagIOError):
    """ファイルが UTF-8 として読めない（UnicodeDecodeError をラップ）."""

    def __init__(self, path: Path | str, cause: UnicodeDecodeError) -> None:
        super().__init__(path, "decode", cause)


class HeaderParseError(SmartTagsError):
    """既存の front matter が壊れていて安全にマージできない."""
