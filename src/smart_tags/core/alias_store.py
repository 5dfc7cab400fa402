"""タグDB（canonical タグ + alias）の永続化と照会.

JSON形式（元ツールの tags_db.json と互換）:
    {
        "tags": [
            {"name": "rust", "aliases": ["rs"]},
            {"name": "python", "aliases": []}
        ]
    }

不変条件:
    - canonical タグは正規化済みで重複しない
    - alias は canonical タグと重複しない（alias 解決は必ず別の文字列になる）
    - alias は1つの canonical タグだけを指す（1ホップ、alias → alias は無い）

未知のキー（トップレベル・各エントリ）は解釈せずに保持し、save() でそのまま書き戻します。

使用例:
    >>> store = AliasStore.load(Path("tags_db.json"))
    >>> store.resolve_exact("rs")
    'rust'
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from .exceptions import ConflictError, CorruptStoreError, TextDecodeError
from .fileio import atomic_write_text, read_text
from .normalize import normalize_tag


class AliasStore:
    """canonical タグと alias の対応表.

    プロセス内で1回ロードし、変更があれば save() で書き戻す値オブジェクトです。
    グローバル状態は持たないので、resolver へは引数として渡します。
    """

    def __init__(self) -> None:
        # dict はキー挿入順を保持するので、canonical の順序集合として使う
        self._canonical: dict[str, list[str]] = {}
        self._aliases: dict[str, str] = {}
        # 解釈しないキー（手編集分など）。save() で書き戻す
        self._extra: dict = {}
        self._entry_extra: dict[str, dict] = {}
        self.changed = False

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and self.resolve_exact(tag) is not None

    def __len__(self) -> int:
        return len(self._canonical)

    def __repr__(self) -> str:
        return f"AliasStore(canonical={len(self._canonical)}, aliases={len(self._aliases)})"

    # ---- 照会 -------------------------------------------------------------

    def resolve_exact(self, tag: str) -> str | None:
        """完全一致で canonical タグを返す.

        Args:
            tag: 照会するタグ（内部で正規化）

        Returns:
            canonical ならそのまま、alias ならターゲット、未知なら None
        """
        key = normalize_tag(tag)
        if key in self._canonical:
            return key
        return self._aliases.get(key)

    def is_canonical(self, tag: str) -> bool:
        return normalize_tag(tag) in self._canonical

    def all_canonical_tags(self) -> list[str]:
        """canonical タグ一覧（挿入順）."""
        return list(self._canonical)

    def aliases_of(self, tag: str) -> list[str]:
        """canonical タグに紐づく alias 一覧（登録順）."""
        return list(self._canonical.get(normalize_tag(tag), []))

    def alias_items(self) -> list[tuple[str, str]]:
        """(alias, canonical) の組を canonical の挿入順で返す."""
        return [(alias, name) for name, aliases in self._canonical.items() for alias in aliases]

    # ---- 変更 -------------------------------------------------------------

    def add_canonical(self, tag: str) -> None:
        """canonical タグを追加する（既存なら何もしない）.

        Raises:
            ConflictError: そのタグが既に alias として登録されている場合
        """
        key = normalize_tag(tag)
        if key in self._canonical:
            return
        if key in self._aliases:
            raise ConflictError(key, key, self._aliases[key], f"'{key}' is already an alias")
        self._canonical[key] = []
        self.changed = True
        logger.debug(f"Added canonical tag '{key}'")

    def add_alias(self, alias: str, target: str) -> None:
        """alias → target を登録する.

        同じ alias → target の再登録は no-op です。

        Args:
            alias: 登録する alias（内部で正規化）
            target: 参照先の canonical タグ（内部で正規化）

        Raises:
            ConflictError: alias が canonical タグである、別ターゲットの alias である、
                または target が canonical タグでない場合
        """
        alias_key = normalize_tag(alias)
        target_key = normalize_tag(target)

        if alias_key in self._canonical:
            raise ConflictError(alias_key, target_key, alias_key, f"'{alias_key}' is a canonical tag")

        existing = self._aliases.get(alias_key)
        if existing is not None:
            if existing == target_key:
                return
            raise ConflictError(
                alias_key, target_key, existing, f"'{alias_key}' already aliases '{existing}'"
            )

        if target_key not in self._canonical:
            # alias → alias の連鎖を作らない
            raise ConflictError(alias_key, target_key, target_key, f"'{target_key}' is not a canonical tag")

        self._aliases[alias_key] = target_key
        self._canonical[target_key].append(alias_key)
        self.changed = True
        logger.debug(f"Registered alias '{alias_key}' -> '{target_key}'")

    # ---- 永続化 -----------------------------------------------------------

    def to_dict(self) -> dict:
        tags = [
            {"name": name, "aliases": list(aliases), **self._entry_extra.get(name, {})}
            for name, aliases in self._canonical.items()
        ]
        return {**self._extra, "tags": tags}

    @classmethod
    def from_dict(cls, data: object, path: Path | str = "<memory>") -> AliasStore:
        """JSONデコード済みデータから構築する.

        Raises:
            CorruptStoreError: 形式不正、または不変条件違反の場合
        """
        if not isinstance(data, dict):
            raise CorruptStoreError(path, f"root must be a JSON object, got {type(data).__name__}")

        entries = data.get("tags", [])
        if not isinstance(entries, list):
            raise CorruptStoreError(path, "'tags' must be a list")

        store = cls()
        store._extra = {k: v for k, v in data.items() if k != "tags"}
        pending_aliases: list[tuple[str, str]] = []

        # Pass 1: canonical を全て登録（alias が後方の canonical と衝突するケースを検出するため）
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                raise CorruptStoreError(path, f"tags[{i}] must be an object with a string 'name'")
            name = normalize_tag(entry["name"])
            if not name:
                raise CorruptStoreError(path, f"tags[{i}] has an empty name")

            aliases = entry.get("aliases", [])
            if aliases is None:
                aliases = []
            if not isinstance(aliases, list) or not all(isinstance(a, str) for a in aliases):
                raise CorruptStoreError(path, f"tags[{i}].aliases must be a list of strings")

            if name in store._canonical:
                logger.warning(f"Duplicate canonical tag '{name}' in {path}; merging its aliases")
            else:
                store._canonical[name] = []
            extra = {k: v for k, v in entry.items() if k not in ("name", "aliases")}
            if extra:
                store._entry_extra.setdefault(name, {}).update(extra)
            pending_aliases.extend((normalize_tag(a), name) for a in aliases)

        # Pass 2: alias
        for alias, name in pending_aliases:
            if not alias or alias == name:
                continue
            try:
                store.add_alias(alias, name)
            except ConflictError as e:
                raise CorruptStoreError(path, str(e)) from e

        store.changed = False
        return store

    @classmethod
    def load(cls, path: Path | str) -> AliasStore:
        """JSONファイルからロードする（存在しなければ空のDB）.

        Args:
            path: DBファイルのパス

        Returns:
            ロードしたストア

        Raises:
            CorruptStoreError: UTF-8 / JSONとして不正、または不変条件違反の場合
            TagIOError: 読み込みに失敗した場合
        """
        path = Path(path)
        if not path.exists():
            logger.info(f"Tag database not found, starting empty: {path}")
            return cls()

        try:
            content = read_text(path)
        except TextDecodeError as e:
            raise CorruptStoreError(path, f"not valid UTF-8: {e.__cause__}") from e
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise CorruptStoreError(path, f"invalid JSON: {e}") from e

        store = cls.from_dict(data, path)
        logger.info(f"Loaded {len(store)} tags and {len(store._aliases)} aliases from {path}")
        return store

    def save(self, path: Path | str) -> None:
        """JSONファイルへ保存する（一時ファイル + rename）.

        Raises:
            TagIOError: 書き込みに失敗した場合
        """
        path = Path(path)
        content = json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"
        atomic_write_text(path, content)
        self.changed = False
        logger.info(f"Tag database written to {path}")
