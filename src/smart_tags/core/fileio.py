"""テキストファイルの読み込みとアトミック書き込み."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from .exceptions import TagIOError, TextDecodeError


def read_text(path: Path | str) -> str:
    """UTF-8 テキストを読み込む（改行コードはそのまま保持）.

    Raises:
        TextDecodeError: UTF-8 として読めない場合
        TagIOError: 読み込みに失敗した場合
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise TextDecodeError(path, e) from e
    except OSError as e:
        raise TagIOError(path, "read", e) from e


def atomic_write_text(path: Path | str, content: str) -> None:
    """同じディレクトリの一時ファイルに書いてから rename で置き換える.

    途中でクラッシュしても、対象ファイルは「旧内容」か「新内容」のどちらかになります。

    Args:
        path: 書き込み先
        content: 書き込む全文

    Raises:
        TagIOError: ディレクトリ作成・書き込み・rename のいずれかに失敗した場合
    """
    path = Path(path)
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise TagIOError(path, "write", e) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
