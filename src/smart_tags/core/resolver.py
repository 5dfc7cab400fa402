"""タグ解決（入力タグ → canonical タグ）.

1タグごとの状態遷移:
    Normalize → ExactCheck → Suggest → Decide / NewTag

- ExactCheck でヒットすれば DB は変更しない
- 候補があれば注入された chooser に1回だけ問い合わせる（リトライなし）
- 候補が無ければ新規 canonical タグとして登録する

バッチは入力順に逐次処理するため、N番目のタグは 1..N-1 番目による DB 変更を参照できます。
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from .alias_store import AliasStore
from .exceptions import ConflictError, EmptyTagError
from .normalize import normalize_tag
from .similarity import DEFAULT_MAX_DISTANCE, DEFAULT_MAX_RESULTS, Suggestion, suggest


class OutcomeKind(str, Enum):
    ALREADY_CANONICAL = "already_canonical"
    RESOLVED_VIA_ALIAS = "resolved_via_alias"
    TYPO_CORRECTED_ONCE = "typo_corrected_once"
    ALIAS_REGISTERED = "alias_registered"
    NEW_TAG_CREATED = "new_tag_created"


class ChoiceKind(str, Enum):
    USE_EXISTING = "use"
    REGISTER_ALIAS = "alias"
    CREATE_NEW = "new"


@dataclass(frozen=True)
class Choice:
    """chooser の回答（3種類のいずれか）.

    USE_EXISTING / REGISTER_ALIAS は候補タグ（candidate）を必ず持ちます。
    """

    kind: ChoiceKind
    candidate: str | None = None

    def __post_init__(self) -> None:
        if self.kind is not ChoiceKind.CREATE_NEW and not self.candidate:
            raise ValueError(f"Choice {self.kind.value!r} requires a candidate tag")

    @classmethod
    def use_existing(cls, candidate: str) -> Choice:
        return cls(ChoiceKind.USE_EXISTING, candidate)

    @classmethod
    def register_alias(cls, candidate: str) -> Choice:
        return cls(ChoiceKind.REGISTER_ALIAS, candidate)

    @classmethod
    def create_new(cls) -> Choice:
        return cls(ChoiceKind.CREATE_NEW)


# (正規化済み入力タグ, 距離順の候補) → Choice
Chooser = Callable[[str, list[Suggestion]], Choice]


@dataclass(frozen=True)
class ResolutionOutcome:
    kind: OutcomeKind
    tag: str
    source: str


@dataclass
class BatchResult:
    """resolve_all() の結果.

    Attributes:
        outcomes: 解決できたタグの結果（入力順）
        failures: 解決できなかった (生入力, 例外) の組
    """

    outcomes: list[ResolutionOutcome] = field(default_factory=list)
    failures: list[tuple[str, Exception]] = field(default_factory=list)

    @property
    def tags(self) -> list[str]:
        """文書に追加する canonical タグ（解決順・重複除去済み）."""
        seen: set[str] = set()
        tags: list[str] = []
        for outcome in self.outcomes:
            if outcome.tag not in seen:
                seen.add(outcome.tag)
                tags.append(outcome.tag)
        return tags


class TagResolver:
    """AliasStore と chooser を使って入力タグを canonical タグへ解決する.

    Args:
        store: タグDB（解決中に変更されうる）
        chooser: 未知タグに近い候補がある場合の意思決定関数
        max_results: 提示する候補数の上限
        max_distance: 候補とみなす最大編集距離
    """

    def __init__(
        self,
        store: AliasStore,
        chooser: Chooser,
        max_results: int = DEFAULT_MAX_RESULTS,
        max_distance: int = DEFAULT_MAX_DISTANCE,
    ) -> None:
        self.store = store
        self.chooser = chooser
        self.max_results = max_results
        self.max_distance = max_distance

    def resolve(self, raw_tag: str) -> ResolutionOutcome:
        """1タグを解決する.

        Raises:
            EmptyTagError: 正規化後に空文字になる場合
            ConflictError: alias 登録が DB に拒否された場合（フォールバックはしない）
        """
        tag = normalize_tag(raw_tag)
        if not tag:
            raise EmptyTagError(raw_tag)

        # ExactCheck
        resolved = self.store.resolve_exact(tag)
        if resolved is not None:
            if resolved == tag:
                return ResolutionOutcome(OutcomeKind.ALREADY_CANONICAL, resolved, raw_tag)
            logger.info(f"Mapping '{tag}' -> '{resolved}'")
            return ResolutionOutcome(OutcomeKind.RESOLVED_VIA_ALIAS, resolved, raw_tag)

        # Suggest
        suggestions = suggest(
            tag,
            self.store.all_canonical_tags(),
            max_results=self.max_results,
            max_distance=self.max_distance,
        )
        if not suggestions:
            logger.debug(f"No close match for '{tag}'")
            return self._create_new(tag, raw_tag)

        # Decide
        logger.debug(f"Suggestions for '{tag}': {[(s.tag, s.distance) for s in suggestions]}")
        choice = self.chooser(tag, suggestions)

        if choice.kind is ChoiceKind.CREATE_NEW:
            return self._create_new(tag, raw_tag)

        candidate = normalize_tag(choice.candidate or "")
        if choice.kind is ChoiceKind.USE_EXISTING:
            target = self.store.resolve_exact(candidate)
            if target is None:
                raise ConflictError(tag, candidate, candidate, f"'{candidate}' is not a known tag")
            logger.info(f"Using '{target}' for '{tag}' (typo correction)")
            return ResolutionOutcome(OutcomeKind.TYPO_CORRECTED_ONCE, target, raw_tag)

        self.store.add_alias(tag, candidate)
        logger.info(f"Registered alias '{tag}' -> '{candidate}'")
        return ResolutionOutcome(OutcomeKind.ALIAS_REGISTERED, candidate, raw_tag)

    def resolve_all(self, raw_tags: Iterable[str]) -> BatchResult:
        """入力順にタグを解決する.

        ConflictError / EmptyTagError はそのタグだけを諦めて警告し、残りは続行します。
        """
        result = BatchResult()
        for raw_tag in raw_tags:
            try:
                result.outcomes.append(self.resolve(raw_tag))
            except (ConflictError, EmptyTagError) as e:
                logger.warning(f"Skipped tag {raw_tag!r}: {e}")
                result.failures.append((raw_tag, e))
        return result

    def _create_new(self, tag: str, raw_tag: str) -> ResolutionOutcome:
        self.store.add_canonical(tag)
        logger.info(f"Registered new tag '{tag}'")
        return ResolutionOutcome(OutcomeKind.NEW_TAG_CREATED, tag, raw_tag)
