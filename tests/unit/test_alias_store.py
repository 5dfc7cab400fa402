"""Unit tests for the alias store."""

import json
from pathlib import Path

import pytest

from smart_tags.core.alias_store import AliasStore
from smart_tags.core.exceptions import ConflictError, CorruptStoreError, TagIOError


def _write_db(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoad:
    def test_missing_file_gives_empty_store(self, tmp_path: Path) -> None:
        """存在しないファイルは空のストアになること."""
        store = AliasStore.load(tmp_path / "missing.json")

        assert len(store) == 0
        assert store.all_canonical_tags() == []
        assert store.changed is False

    def test_load_valid_json(self, tmp_path: Path) -> None:
        db = _write_db(
            tmp_path / "tags_db.json",
            {"tags": [{"name": "rust", "aliases": ["rs"]}, {"name": "python", "aliases": ["py"]}]},
        )

        store = AliasStore.load(db)

        assert store.all_canonical_tags() == ["rust", "python"]
        assert store.resolve_exact("rs") == "rust"
        assert store.resolve_exact("py") == "python"
        assert store.changed is False

    def test_load_normalizes_strings(self, tmp_path: Path) -> None:
        db = _write_db(tmp_path / "tags_db.json", {"tags": [{"name": " Rust ", "aliases": ["RS"]}]})

        store = AliasStore.load(db)

        assert store.all_canonical_tags() == ["rust"]
        assert store.resolve_exact("rs") == "rust"

    def test_missing_aliases_key(self, tmp_path: Path) -> None:
        """aliases キーが無いエントリも読めること."""
        db = _write_db(tmp_path / "tags_db.json", {"tags": [{"name": "rust"}]})

        store = AliasStore.load(db)

        assert store.aliases_of("rust") == []

    def test_unknown_keys_tolerated(self, tmp_path: Path) -> None:
        """未知のキーがあっても読めること（前方互換）."""
        db = _write_db(
            tmp_path / "tags_db.json",
            {
                "version": 3,
                "tags": [{"name": "rust", "aliases": ["rs"], "color": "orange"}],
            },
        )

        store = AliasStore.load(db)

        assert store.resolve_exact("rs") == "rust"

    def test_not_utf8(self, tmp_path: Path) -> None:
        """UTF-8 として読めないDBは CorruptStoreError になること."""
        db = tmp_path / "tags_db.json"
        db.write_bytes(b'{"tags": [{"name": "caf\xe9"}]}')

        with pytest.raises(CorruptStoreError, match="not valid UTF-8"):
            AliasStore.load(db)

    def test_invalid_json(self, tmp_path: Path) -> None:
        db = tmp_path / "tags_db.json"
        db.write_text("{invalid json}", encoding="utf-8")

        with pytest.raises(CorruptStoreError, match="invalid JSON"):
            AliasStore.load(db)

    def test_root_must_be_object(self, tmp_path: Path) -> None:
        db = _write_db(tmp_path / "tags_db.json", [])

        with pytest.raises(CorruptStoreError, match="root must be a JSON object"):
            AliasStore.load(db)

    def test_tags_must_be_list(self, tmp_path: Path) -> None:
        db = _write_db(tmp_path / "tags_db.json", {"tags": {"rust": []}})

        with pytest.raises(CorruptStoreError, match="'tags' must be a list"):
            AliasStore.load(db)

    def test_entry_without_name(self, tmp_path: Path) -> None:
        db = _write_db(tmp_path / "tags_db.json", {"tags": [{"aliases": ["rs"]}]})

        with pytest.raises(CorruptStoreError, match="string 'name'"):
            AliasStore.load(db)

    def test_alias_that_is_canonical(self, tmp_path: Path) -> None:
        """alias が別の canonical タグと同じなら不正とみなすこと."""
        db = _write_db(
            tmp_path / "tags_db.json",
            {"tags": [{"name": "rust", "aliases": ["python"]}, {"name": "python", "aliases": []}]},
        )

        with pytest.raises(CorruptStoreError, match="is a canonical tag"):
            AliasStore.load(db)

    def test_alias_claimed_twice(self, tmp_path: Path) -> None:
        db = _write_db(
            tmp_path / "tags_db.json",
            {"tags": [{"name": "rust", "aliases": ["r"]}, {"name": "ruby", "aliases": ["r"]}]},
        )

        with pytest.raises(CorruptStoreError, match="already aliases"):
            AliasStore.load(db)

    def test_duplicate_canonical_entries_merged(self, tmp_path: Path) -> None:
        db = _write_db(
            tmp_path / "tags_db.json",
            {"tags": [{"name": "rust", "aliases": ["rs"]}, {"name": "Rust", "aliases": ["rust-lang"]}]},
        )

        store = AliasStore.load(db)

        assert store.all_canonical_tags() == ["rust"]
        assert store.aliases_of("rust") == ["rs", "rust-lang"]


class TestResolveExact:
    def test_canonical_returns_itself(self) -> None:
        store = AliasStore()
        store.add_canonical("rust")

        assert store.resolve_exact("rust") == "rust"
        assert store.resolve_exact("RUST") == "rust"

    def test_alias_is_single_hop(self) -> None:
        """alias は常に canonical を返し、さらに別の alias には辿らないこと."""
        store = AliasStore()
        store.add_canonical("rust")
        store.add_alias("rs", "rust")

        assert store.resolve_exact("rs") == "rust"
        assert store.resolve_exact(store.resolve_exact("rs")) == "rust"

    def test_unknown(self) -> None:
        assert AliasStore().resolve_exact("rust") is None

    def test_contains(self) -> None:
        store = AliasStore()
        store.add_canonical("rust")
        store.add_alias("rs", "rust")

        assert "rust" in store
        assert "rs" in store
        assert "go" not in store


class TestMutations:
    def test_add_canonical_is_idempotent(self) -> None:
        store = AliasStore()
        store.add_canonical("rust")
        store.changed = False

        store.add_canonical("Rust")

        assert store.all_canonical_tags() == ["rust"]
        assert store.changed is False

    def test_add_canonical_keeps_insertion_order(self) -> None:
        store = AliasStore()
        for tag in ["python", "rust", "go"]:
            store.add_canonical(tag)

        assert store.all_canonical_tags() == ["python", "rust", "go"]

    def test_add_canonical_rejects_existing_alias(self) -> None:
        store = AliasStore()
        store.add_canonical("rust")
        store.add_alias("rs", "rust")

        with pytest.raises(ConflictError):
            store.add_canonical("rs")

    def test_add_alias(self) -> None:
        store = AliasStore()
        store.add_canonical("rust")
        store.changed = False

        store.add_alias("rs", "rust")

        assert store.aliases_of("rust") == ["rs"]
        assert store.changed is True

    def test_add_same_alias_again_is_noop(self) -> None:
        store = AliasStore()
        store.add_canonical("rust")
        store.add_alias("rs", "rust")
        store.changed = False

        store.add_alias("RS", "rust")

        assert store.aliases_of("rust") == ["rs"]
        assert store.changed is False

    def test_alias_cannot_be_canonical(self) -> None:
        store = AliasStore()
        store.add_canonical("rust")
        store.add_canonical("python")

        with pytest.raises(ConflictError, match="is a canonical tag"):
            store.add_alias("python", "rust")

    def test_alias_cannot_change_target(self) -> None:
        store = AliasStore()
        store.add_canonical("rust")
        store.add_canonical("ruby")
        store.add_alias("r", "rust")

        with pytest.raises(ConflictError, match="already aliases 'rust'") as excinfo:
            store.add_alias("r", "ruby")

        assert excinfo.value.existing == "rust"
        assert store.resolve_exact("r") == "rust"

    def test_alias_target_must_be_canonical(self) -> None:
        """alias → alias の連鎖を作れないこと."""
        store = AliasStore()
        store.add_canonical("rust")
        store.add_alias("rs", "rust")

        with pytest.raises(ConflictError, match="is not a canonical tag"):
            store.add_alias("r", "rs")


class TestSave:
    def test_round_trip(self, tmp_path: Path) -> None:
        store = AliasStore()
        store.add_canonical("rust")
        store.add_canonical("python")
        store.add_alias("rs", "rust")
        db = tmp_path / "tags_db.json"

        store.save(db)
        loaded = AliasStore.load(db)

        assert loaded.to_dict() == store.to_dict()
        assert json.loads(db.read_text(encoding="utf-8")) == {
            "tags": [{"name": "rust", "aliases": ["rs"]}, {"name": "python", "aliases": []}]
        }

    def test_unknown_keys_written_back(self, tmp_path: Path) -> None:
        """手編集された未知のキーが save() で失われないこと."""
        db = _write_db(
            tmp_path / "tags_db.json",
            {
                "version": 3,
                "tags": [{"name": "rust", "aliases": ["rs"], "color": "orange"}],
            },
        )
        store = AliasStore.load(db)
        store.add_canonical("go")

        store.save(db)

        assert json.loads(db.read_text(encoding="utf-8")) == {
            "version": 3,
            "tags": [
                {"name": "rust", "aliases": ["rs"], "color": "orange"},
                {"name": "go", "aliases": []},
            ],
        }

    def test_save_resets_changed(self, tmp_path: Path) -> None:
        store = AliasStore()
        store.add_canonical("rust")

        store.save(tmp_path / "tags_db.json")

        assert store.changed is False

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db = tmp_path / "nested" / "dir" / "tags_db.json"
        store = AliasStore()
        store.add_canonical("rust")

        store.save(db)

        assert db.exists()

    def test_no_temporary_files_left(self, tmp_path: Path) -> None:
        store = AliasStore()
        store.add_canonical("rust")

        store.save(tmp_path / "tags_db.json")
        store.add_canonical("go")
        store.save(tmp_path / "tags_db.json")

        assert [p.name for p in tmp_path.iterdir()] == ["tags_db.json"]

    def test_non_ascii_written_verbatim(self, tmp_path: Path) -> None:
        db = tmp_path / "tags_db.json"
        store = AliasStore()
        store.add_canonical("日本語")

        store.save(db)

        assert "日本語" in db.read_text(encoding="utf-8")

    def test_write_failure(self, tmp_path: Path) -> None:
        """親パスがファイルだと TagIOError になること."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = AliasStore()
        store.add_canonical("rust")

        with pytest.raises(TagIOError, match="Failed to write"):
            store.save(blocker / "tags_db.json")
