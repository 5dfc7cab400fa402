"""タグDBの内容をTSVレポートとして出力する。

- canonical_tags.tsv: tag, alias_count（DBの登録順）
- aliases.tsv: alias, canonical（canonical → alias の順でソート）
"""

from __future__ import annotations

import argparse
from pathlib import Path

import polars as pl
from loguru import logger

from smart_tags.config import resolve_settings
from smart_tags.core.alias_store import AliasStore


def build_canonical_frame(store: AliasStore) -> pl.DataFrame:
    tags = store.all_canonical_tags()
    return pl.DataFrame(
        {
            "tag": tags,
            "alias_count": [len(store.aliases_of(t)) for t in tags],
        },
        schema={"tag": pl.String, "alias_count": pl.Int64},
    )


def build_alias_frame(store: AliasStore) -> pl.DataFrame:
    """alias 表（alias, canonical）を作る.

    Returns:
        canonical → alias の順でソートした DataFrame
    """
    items = store.alias_items()
    df = pl.DataFrame(
        {
            "alias": [alias for alias, _ in items],
            "canonical": [canonical for _, canonical in items],
        },
        schema={"alias": pl.String, "canonical": pl.String},
    )
    return df.sort(["canonical", "alias"])


def export_store_report(db_path: Path | str, out_dir: Path | str) -> dict[str, Path]:
    """タグDBを読み込み、TSVレポートを書き出す.

    Args:
        db_path: タグDB（JSON）のパス
        out_dir: 出力ディレクトリ

    Returns:
        出力したTSVのパス
        - "canonical_tags": canonical_tags.tsv
        - "aliases": aliases.tsv

    Raises:
        CorruptStoreError: DBが壊れている場合
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    store = AliasStore.load(db_path)

    paths = {
        "canonical_tags": out_dir / "canonical_tags.tsv",
        "aliases": out_dir / "aliases.tsv",
    }
    build_canonical_frame(store).write_csv(paths["canonical_tags"], separator="\t")
    build_alias_frame(store).write_csv(paths["aliases"], separator="\t")

    logger.info(f"Store report written to {out_dir} ({len(store)} tags, {len(store.alias_items())} aliases)")
    return paths


def main() -> None:
    parser = argparse.ArgumentParser(description="Export the tag database as TSV reports")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Tag database path (default: SMART_TAGS_DB or tags_db.json)",
    )
    parser.add_argument("--out", type=Path, required=True, help="Output directory")
    args = parser.parse_args()

    settings = resolve_settings(args.db)
    export_store_report(settings.db_path, args.out)


if __name__ == "__main__":
    main()
