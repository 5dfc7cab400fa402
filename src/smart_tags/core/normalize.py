"""タグ正規化（入力タグ → canonical 比較キー）.

DB・文書・類似度計算のすべてで同じ比較キーを使うため、正規化はここに集約します。
"""

from __future__ import annotations


def normalize_tag(raw_tag: str) -> str:
    """入力タグを正規化する（前後の空白除去 + 小文字化）.

    Args:
        raw_tag: ユーザー入力や文書から来た生タグ

    Returns:
        正規化済みタグ（空白のみの場合は空文字）

    Examples:
        >>> normalize_tag("  Rust ")
        'rust'
        >>> normalize_tag("Machine Learning")
        'machine learning'
    """
    return raw_tag.strip().lower()
