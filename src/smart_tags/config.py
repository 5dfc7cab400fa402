"""実行設定（DBパス・類似候補の閾値）の解決.

優先順位: CLI引数 > 環境変数 > 既定値
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from smart_tags.core.similarity import DEFAULT_MAX_DISTANCE, DEFAULT_MAX_RESULTS

ENV_DB = "SMART_TAGS_DB"
ENV_MAX_DISTANCE = "SMART_TAGS_MAX_DISTANCE"
ENV_MAX_RESULTS = "SMART_TAGS_MAX_RESULTS"
DEFAULT_DB_PATH = Path("tags_db.json")


@dataclass(frozen=True)
class Settings:
    db_path: Path
    max_distance: int = DEFAULT_MAX_DISTANCE
    max_results: int = DEFAULT_MAX_RESULTS


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


def resolve_settings(
    db: Path | str | None = None,
    max_distance: int | None = None,
    max_results: int | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """CLI引数と環境変数から Settings を組み立てる.

    Args:
        db: --db の値（None なら環境変数/既定値）
        max_distance: --max-distance の値
        max_results: --max-results の値
        env: 環境変数（テスト用。None なら os.environ）

    Returns:
        解決済みの Settings

    Raises:
        ValueError: 環境変数の数値が不正な場合
    """
    env = os.environ if env is None else env

    if db is not None:
        db_path = Path(db)
    elif env.get(ENV_DB):
        db_path = Path(env[ENV_DB]).expanduser()
    else:
        db_path = DEFAULT_DB_PATH

    if max_distance is None:
        max_distance = _env_int(env, ENV_MAX_DISTANCE, DEFAULT_MAX_DISTANCE)
    if max_results is None:
        max_results = _env_int(env, ENV_MAX_RESULTS, DEFAULT_MAX_RESULTS)

    return Settings(db_path=db_path, max_distance=max_distance, max_results=max_results)
