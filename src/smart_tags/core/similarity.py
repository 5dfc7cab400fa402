"""既知タグの類似候補検索（Levenshtein 距離）.

未知タグに対して「打ち間違いでは？」と提示する候補を決める純粋関数群です。
結果は決定的（同じ入力・同じ候補集合なら同じ順序）で、対話メニューの既定選択もこれに依存します。
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .normalize import normalize_tag

DEFAULT_MAX_DISTANCE = 2
DEFAULT_MAX_RESULTS = 3


@dataclass(frozen=True)
class Suggestion:
    tag: str
    distance: int


def levenshtein(a: str, b: str) -> int:
    """挿入・削除・置換を1として数える編集距離."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i]
        for j, cb in enumerate(b, start=1):
            curr.append(
                min(
                    prev[j] + 1,  # 削除
                    curr[j - 1] + 1,  # 挿入
                    prev[j - 1] + (ca != cb),  # 置換
                )
            )
        prev = curr
    return prev[-1]


def suggest(
    input_tag: str,
    candidates: Iterable[str],
    max_results: int = DEFAULT_MAX_RESULTS,
    max_distance: int = DEFAULT_MAX_DISTANCE,
) -> list[Suggestion]:
    """入力タグに近い候補を距離の昇順で返す.

    Args:
        input_tag: 入力タグ（内部で正規化）
        candidates: 既知の canonical タグ（この順序が同距離時のタイブレーク）
        max_results: 返す候補数の上限
        max_distance: 許容する最大編集距離

    Returns:
        Suggestion のリスト（空なら「近い候補なし」）

    Examples:
        >>> suggest("pyhton", ["rust", "python"])
        [Suggestion(tag='python', distance=2)]
    """
    if max_results <= 0:
        return []

    key = normalize_tag(input_tag)
    scored: list[Suggestion] = []
    for candidate in candidates:
        distance = levenshtein(key, normalize_tag(candidate))
        if distance <= max_distance:
            scored.append(Suggestion(candidate, distance))

    # sorted は安定ソートなので、同距離は候補の元の順序を保つ
    scored = sorted(scored, key=lambda s: s.distance)
    return scored[:max_results]
