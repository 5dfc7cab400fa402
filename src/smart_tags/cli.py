"""smart-tags CLI（オーケストレーター）.

1回の実行でやること:
    1. タグDBをロード（壊れていれば何もせず終了）
    2. 文書を読み込み、front matter を検証（壊れていれば質問する前に終了）
    3. 入力タグを順に解決（未知タグで近い候補があれば質問）
    4. front matter にマージ（メモリ上で全文を作ってから書く）
    5. DB（変更時のみ）と文書（変更時のみ）をそれぞれ独立に保存
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from smart_tags.config import ENV_DB, Settings, resolve_settings
from smart_tags.core.alias_store import AliasStore
from smart_tags.core.exceptions import SmartTagsError, TagIOError
from smart_tags.core.fileio import atomic_write_text, read_text
from smart_tags.core.frontmatter import merge_tags, read_tags
from smart_tags.core.resolver import Choice, ChoiceKind, Chooser, ResolutionOutcome, TagResolver
from smart_tags.core.similarity import Suggestion

__version__ = "0.1.0"

EXIT_ERROR = 1
EXIT_ABORTED = 130


@dataclass
class TagReport:
    """tag_document() の結果.

    Attributes:
        tags: 文書へ追加対象になった canonical タグ（解決順）
        outcomes: タグごとの解決結果
        failures: 解決できなかった (生入力, 理由)
        store_saved: DBを書き込んだか
        document_written: 文書を書き込んだか
        errors: 保存時のエラー（DB と文書は独立に試みる）
    """

    tags: list[str] = field(default_factory=list)
    outcomes: list[ResolutionOutcome] = field(default_factory=list)
    failures: list[tuple[str, Exception]] = field(default_factory=list)
    store_saved: bool = False
    document_written: bool = False
    updated_text: str = ""
    errors: list[TagIOError] = field(default_factory=list)


def build_menu(tag: str, suggestions: list[Suggestion]) -> list[tuple[str, Choice]]:
    """対話メニューの項目（表示文字列, Choice）を作る."""
    best = suggestions[0].tag
    items = [(f"Use existing '{s.tag}' (Typo correction)", Choice.use_existing(s.tag)) for s in suggestions]
    items.append((f"Register '{tag}' as alias for '{best}'", Choice.register_alias(best)))
    items.append((f"Create new tag '{tag}'", Choice.create_new()))
    return items


def prompt_choice(
    tag: str,
    suggestions: list[Suggestion],
    input_fn: Callable[[str], str] | None = None,
    print_fn: Callable[[str], None] = print,
) -> Choice:
    """端末メニューで未知タグの扱いを選ばせる（空入力は先頭項目）.

    Raises:
        EOFError / KeyboardInterrupt: 入力が打ち切られた場合（呼び出し側で中断扱い）
    """
    input_fn = input_fn or input
    items = build_menu(tag, suggestions)
    print_fn(f"Tag '{tag}' is unknown.")
    for i, (label, _) in enumerate(items, start=1):
        print_fn(f"  {i}) {label}")

    while True:
        answer = input_fn("How to handle this? [1]: ").strip()
        if answer == "":
            return items[0][1]
        if answer.isdigit() and 1 <= int(answer) <= len(items):
            return items[int(answer) - 1][1]
        print_fn(f"Please enter a number between 1 and {len(items)}.")


def policy_chooser(policy: ChoiceKind) -> Chooser:
    """常に同じ方針で最有力候補に答える chooser（非対話実行用）."""

    def _choose(tag: str, suggestions: list[Suggestion]) -> Choice:
        best = suggestions[0].tag
        logger.info(f"'{tag}': applying --on-unknown={policy.value} (best match '{best}')")
        if policy is ChoiceKind.USE_EXISTING:
            return Choice.use_existing(best)
        if policy is ChoiceKind.REGISTER_ALIAS:
            return Choice.register_alias(best)
        return Choice.create_new()

    return _choose


def tag_document(
    path: Path | str,
    raw_tags: Sequence[str],
    settings: Settings,
    chooser: Chooser,
    dry_run: bool = False,
) -> TagReport:
    """文書にタグを追加する一連の処理.

    Args:
        path: 対象の Markdown/テキストファイル
        raw_tags: ユーザー入力のタグ（順序保持・重複可）
        settings: DBパスと閾値
        chooser: 未知タグの意思決定関数
        dry_run: True なら何も書き込まない

    Returns:
        TagReport

    Raises:
        CorruptStoreError: DBが壊れている場合（タグ処理前）
        TagIOError: DBまたは文書の読み込みに失敗した場合
        TextDecodeError: 文書が UTF-8 として読めない場合
        HeaderParseError: 文書の front matter が壊れている場合（書き込み前）
    """
    path = Path(path)
    store = AliasStore.load(settings.db_path)
    document = read_text(path)
    existing = read_tags(document)
    logger.debug(f"Existing tags in {path}: {existing}")

    resolver = TagResolver(
        store,
        chooser,
        max_results=settings.max_results,
        max_distance=settings.max_distance,
    )
    batch = resolver.resolve_all(raw_tags)
    updated = merge_tags(document, batch.tags)

    report = TagReport(
        tags=batch.tags,
        outcomes=batch.outcomes,
        failures=batch.failures,
        updated_text=updated,
    )

    if dry_run:
        logger.info("Dry run: nothing written")
        return report

    if store.changed:
        try:
            store.save(settings.db_path)
            report.store_saved = True
        except TagIOError as e:
            logger.error(str(e))
            report.errors.append(e)

    if updated != document:
        try:
            atomic_write_text(path, updated)
            report.document_written = True
        except TagIOError as e:
            logger.error(str(e))
            report.errors.append(e)
    else:
        logger.info(f"No new tags for {path}")

    return report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smart-tags",
        description="Add normalized tags to a Markdown file's front matter",
    )
    parser.add_argument("path", type=Path, metavar="FILE", help="Markdown file to tag")
    parser.add_argument("tags", nargs="+", metavar="TAGS", help="Tags to add")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"Tag database path (env {ENV_DB}, default: tags_db.json)",
    )
    parser.add_argument(
        "--max-distance",
        type=int,
        default=None,
        help="Maximum edit distance for suggestions (default: 2)",
    )
    parser.add_argument(
        "--max-results",
        type=int,
        default=None,
        help="Maximum number of suggestions shown (default: 3)",
    )
    parser.add_argument(
        "--on-unknown",
        choices=["ask", "use", "alias", "new"],
        default="ask",
        help="How to handle unknown tags with close matches (default: ask)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Resolve and merge without writing")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level, format="<level>{level: <8}</level> {message}")


def main(argv: Sequence[str] | None = None) -> None:
    """CLI エントリポイント."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    if args.on_unknown == "ask":
        chooser: Chooser = prompt_choice
    else:
        chooser = policy_chooser(ChoiceKind(args.on_unknown))

    try:
        settings = resolve_settings(args.db, args.max_distance, args.max_results)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        raise SystemExit(EXIT_ERROR) from e

    try:
        print(f"Using DB: {settings.db_path}")
        print("Checking tags...")
        report = tag_document(args.path, args.tags, settings, chooser, dry_run=args.dry_run)
    except SmartTagsError as e:
        logger.error(str(e))
        raise SystemExit(EXIT_ERROR) from e
    except (EOFError, KeyboardInterrupt) as e:
        logger.error("Aborted; nothing was written")
        raise SystemExit(EXIT_ABORTED) from e

    for raw_tag, error in report.failures:
        print(f"Skipped {raw_tag!r}: {error}")

    if args.dry_run:
        print(f"Would add tags to {args.path}: {report.tags}")
        return

    if report.store_saved:
        print(f"Tag database updated at {settings.db_path}")
    if report.errors:
        raise SystemExit(EXIT_ERROR)

    print(f"Successfully added tags to {args.path}: {report.tags}")


if __name__ == "__main__":
    main()
