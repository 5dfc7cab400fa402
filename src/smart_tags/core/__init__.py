"""タグ解決とfront matterマージのコア処理群.

- 正規化（入力タグ → 比較キー）
- タグDB（canonical + alias）
- 類似候補検索（Levenshtein）
- タグ解決（状態遷移 + chooser）
- front matter マージ（tags 行だけを書き換える）
"""

from .alias_store import AliasStore
from .exceptions import (
    ConflictError,
    CorruptStoreError,
    EmptyTagError,
    HeaderParseError,
    SmartTagsError,
    TagIOError,
    TextDecodeError,
)
from .frontmatter import merge_tags, read_tags
from .normalize import normalize_tag
from .resolver import BatchResult, Choice, ChoiceKind, OutcomeKind, ResolutionOutcome, TagResolver
from .similarity import Suggestion, levenshtein, suggest

__all__ = [
    "AliasStore",
    "normalize_tag",
    "suggest",
    "levenshtein",
    "Suggestion",
    "TagResolver",
    "Choice",
    "ChoiceKind",
    "OutcomeKind",
    "ResolutionOutcome",
    "BatchResult",
    "merge_tags",
    "read_tags",
    "SmartTagsError",
    "CorruptStoreError",
    "ConflictError",
    "EmptyTagError",
    "TagIOError",
    "TextDecodeError",
    "HeaderParseError",
]
