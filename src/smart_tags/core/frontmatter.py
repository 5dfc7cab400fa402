"""front matter（先頭の YAML ヘッダ）への tags マージ.

設計方針:
    - YAML ローダー（PyYAML）はヘッダの検証と tags 値の読み取りだけに使う
    - 書き換えるのは tags キーの行だけ。他のキー・値・順序・本文はバイト単位で保持する
      （汎用シリアライザで再出力すると、キー順・クォート・スカラー表記が変わるため）
    - 既存タグの表記と順序は変えず、新しいタグだけ末尾に追加する（比較は正規化キー）
    - 書き換え後にヘッダを再ロードし、tags 以外が変わっていないことを確認する

対応する tags の形:
    tags:            tags: [a, b]        tags: a        tags:
      - a                                               tags: []
      - b
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass

import yaml

from .exceptions import HeaderParseError
from .normalize import normalize_tag

_DELIMITER = "---"
_BOM = "\ufeff"
_DEFAULT_INDENT = "  "
_LINE = re.compile(r"[^\n]*\n|[^\n]+$")
_TAGS_KEY = re.compile(r"""^(?P<key>tags|"tags"|'tags')[ \t]*:(?P<rest>(?:[ \t].*)?)$""")
_BLOCK_ITEM = re.compile(r"^(?P<indent>[ \t]*)-(?:[ \t]|$)")
# プレーンスカラーとして書くと意味が変わる/壊れる文字
_UNSAFE_PLAIN = set(",[]{}#&*!|>'\"%@`")


@dataclass
class _Document:
    prefix: str
    open_line: str
    lines: list[str]
    close_line: str
    body: str
    newline: str

    def render(self, lines: list[str]) -> str:
        return self.prefix + self.open_line + "".join(lines) + self.close_line + self.body


def _split_lines(text: str) -> list[str]:
    return _LINE.findall(text)


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def _detect_newline(text: str) -> str:
    first_eol = text.find("\n")
    if first_eol > 0 and text[first_eol - 1] == "\r":
        return "\r\n"
    return "\n"


def _split_document(text: str) -> _Document | None:
    """先頭の --- ... --- を切り出す（無ければ None）.

    終了デリミタが無い場合（本文が水平線で始まる文書など）もヘッダ無しとして扱う。
    """
    prefix = _BOM if text.startswith(_BOM) else ""
    rest = text[len(prefix) :]
    lines = _split_lines(rest)
    if not lines or _strip_eol(lines[0]).rstrip() != _DELIMITER:
        return None

    for i in range(1, len(lines)):
        if _strip_eol(lines[i]).rstrip() == _DELIMITER:
            return _Document(
                prefix=prefix,
                open_line=lines[0],
                lines=lines[1:i],
                close_line=lines[i],
                body="".join(lines[i + 1 :]),
                newline=_detect_newline(rest),
            )
    return None


def _load_mapping(content: str) -> dict:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise HeaderParseError(f"Invalid YAML in front matter: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise HeaderParseError(f"Front matter must be a mapping, got {type(data).__name__}")
    return data


def _tag_values(value: object) -> list[str]:
    """tags の値を文字列リストとして読む.

    Raises:
        HeaderParseError: mapping やネストしたリストなど、タグとして読めない値の場合
    """
    if value is None:
        return []
    if isinstance(value, dict):
        raise HeaderParseError("'tags' must be a list or a scalar, got a mapping")
    if not isinstance(value, list):
        text = str(value)
        return [text] if text.strip() else []

    tags: list[str] = []
    for item in value:
        if item is None:
            continue
        if isinstance(item, (dict, list)):
            raise HeaderParseError(f"'tags' items must be scalars, got {type(item).__name__}")
        tags.append(str(item))
    return tags


def format_scalar(tag: str) -> str:
    """YAML に書くタグ表記（読み戻して同じ文字列になるならプレーン、それ以外は二重引用符）."""
    plain_ok = (
        bool(tag)
        and tag == tag.strip()
        and not any(ch in _UNSAFE_PLAIN for ch in tag)
        and ": " not in tag
        and not tag.startswith(("-", "?", ":"))
    )
    if plain_ok:
        try:
            plain_ok = yaml.safe_load(tag) == tag
        except yaml.YAMLError:
            plain_ok = False
    # JSON の二重引用符文字列は YAML の double-quoted scalar としてそのまま読める
    return tag if plain_ok else json.dumps(tag, ensure_ascii=False)


def _value_text(rest: str) -> str:
    value = rest.strip()
    return "" if value.startswith("#") else value


def _find_tags_key(lines: list[str]) -> int | None:
    hits = [i for i, line in enumerate(lines) if _TAGS_KEY.match(_strip_eol(line))]
    if len(hits) > 1:
        raise HeaderParseError("Front matter has more than one 'tags' key")
    return hits[0] if hits else None


def _block_span_end(lines: list[str], start: int) -> int:
    """キー行の直後から、インデント行・'-' 行・空行・コメント行が続く範囲の終端を返す."""
    end = start + 1
    while end < len(lines):
        line = _strip_eol(lines[end])
        if line.strip() == "" or line[0] in " \t-#":
            end += 1
            continue
        break
    # 末尾の空行・コメント行は次のキーの前置きとして残す
    while end > start + 1 and (
        _strip_eol(lines[end - 1]).strip() == "" or _strip_eol(lines[end - 1]).lstrip().startswith("#")
    ):
        end -= 1
    return end


def _find_flow_close(text: str, start: int) -> int | None:
    """text[start] の '[' に対応する ']' の位置を返す."""
    depth = 0
    quote: str | None = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if quote == '"' and ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch in "[{":
            depth += 1
        elif ch in "]}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def _render_block(key: str, tags: list[str], indent: str, newline: str) -> list[str]:
    return [f"{key}:{newline}"] + [f"{indent}- {format_scalar(t)}{newline}" for t in tags]


def _block_items(lines: list[str], key_index: int) -> tuple[int, list[int]]:
    end = _block_span_end(lines, key_index)
    return end, [i for i in range(key_index + 1, end) if _BLOCK_ITEM.match(_strip_eol(lines[i]))]


def _merge_block(lines: list[str], key_index: int, additions: list[str], newline: str) -> list[str]:
    # 最後の要素（と継続行）の直後に差し込む
    end, item_indexes = _block_items(lines, key_index)
    if item_indexes:
        indent = _BLOCK_ITEM.match(_strip_eol(lines[item_indexes[0]])).group("indent")
    else:
        indent = _DEFAULT_INDENT
    new_items = [f"{indent}- {format_scalar(t)}{newline}" for t in additions]
    return lines[:end] + new_items + lines[end:]


def _merge_flow(lines: list[str], key_index: int, additions: list[str]) -> list[str]:
    span = "".join(lines[key_index:])
    open_pos = span.index("[")
    close_pos = _find_flow_close(span, open_pos)
    if close_pos is None:
        raise HeaderParseError("Unterminated flow sequence in 'tags'")

    head = span[:close_pos]
    stripped = head.rstrip()
    gap = head[len(stripped) :]
    joined = ", ".join(format_scalar(t) for t in additions)
    if stripped.endswith("["):
        head = stripped + joined
    elif stripped.endswith(","):
        head = stripped + " " + joined
    else:
        head = stripped + ", " + joined
    return lines[:key_index] + _split_lines(head + gap + span[close_pos:])


def _merge_rewrite(
    lines: list[str], key_index: int, key: str, tags: list[str], newline: str
) -> list[str]:
    end = _block_span_end(lines, key_index)
    return lines[:key_index] + _render_block(key, tags, _DEFAULT_INDENT, newline) + lines[end:]


def _verify(before: dict, content: str, expected_tags: list[str]) -> None:
    after = _load_mapping(content)
    others_before = {k: v for k, v in before.items() if k != "tags"}
    others_after = {k: v for k, v in after.items() if k != "tags"}
    if others_before != others_after or _tag_values(after.get("tags")) != expected_tags:
        raise HeaderParseError("Front matter merge could not be verified; refusing to rewrite the header")


def read_tags(document_text: str) -> list[str]:
    """文書の front matter にある tags を返す（ヘッダが無ければ空リスト）.

    Raises:
        HeaderParseError: ヘッダが壊れている場合
    """
    doc = _split_document(document_text)
    if doc is None:
        return []
    data = _load_mapping("".join(doc.lines))
    _find_tags_key(doc.lines)
    return _tag_values(data.get("tags"))


def merge_tags(document_text: str, tags: Iterable[str]) -> str:
    """canonical タグを文書の front matter にマージする.

    Args:
        document_text: 文書全文
        tags: 追加したいタグ（この順序で末尾に追加）

    Returns:
        更新後の文書全文（追加するものが無ければ入力そのもの）

    Raises:
        HeaderParseError: 既存ヘッダが壊れていて安全にマージできない場合

    Examples:
        >>> merge_tags("# Title\\n", ["rust"])
        '---\\ntags:\\n  - rust\\n---\\n# Title\\n'
    """
    doc = _split_document(document_text)

    if doc is None:
        existing: list[str] = []
        data: dict = {}
    else:
        data = _load_mapping("".join(doc.lines))
        existing = _tag_values(data.get("tags"))

    seen = {normalize_tag(t) for t in existing}
    additions: list[str] = []
    for tag in tags:
        key = normalize_tag(tag)
        if key and key not in seen:
            seen.add(key)
            additions.append(tag)

    if not additions:
        return document_text

    if doc is None:
        prefix = _BOM if document_text.startswith(_BOM) else ""
        body = document_text[len(prefix) :]
        newline = _detect_newline(body)
        header = _render_block("tags", additions, _DEFAULT_INDENT, newline)
        _verify({}, "".join(header), additions)
        return prefix + _DELIMITER + newline + "".join(header) + _DELIMITER + newline + body

    key_index = _find_tags_key(doc.lines)
    if key_index is None:
        if "tags" in data:
            raise HeaderParseError("Cannot locate the 'tags' key line in front matter")
        new_lines = doc.lines + _render_block("tags", additions, _DEFAULT_INDENT, doc.newline)
    else:
        match = _TAGS_KEY.match(_strip_eol(doc.lines[key_index]))
        key = match.group("key")
        value = _value_text(match.group("rest"))
        current = data.get("tags")
        has_items = isinstance(current, list) and bool(_block_items(doc.lines, key_index)[1])
        if value == "" and (current is None or has_items):
            new_lines = _merge_block(doc.lines, key_index, additions, doc.newline)
        elif value.startswith("[") and isinstance(current, list):
            new_lines = _merge_flow(doc.lines, key_index, additions)
        else:
            new_lines = _merge_rewrite(doc.lines, key_index, key, existing + additions, doc.newline)

    content = "".join(new_lines)
    _verify(data, content, existing + additions)
    return doc.render(new_lines)
