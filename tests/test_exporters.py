"""
tests/test_exporters.py
File-system behaviour of queryfields.exporters.FragmentExporter.
"""

from __future__ import annotations

import json
import pathlib
from typing import Dict

from queryfields.exporters import MANIFEST_FILE_NAME, FragmentExporter
from queryfields.models import GenerationConfig
from queryfields.utils import sha256_hex

FILES: Dict[str, str] = {
    "query_fields.py": "# marker\n",
    "shop/item_repository_queries.py": "class ItemRepositoryQueries:\n    pass\n",
}


class TestFragmentExporter:
    def test_writes_files_and_manifest(self, output_dir: pathlib.Path) -> None:
        result = FragmentExporter(GenerationConfig(), output_dir).export(FILES)

        assert result.success
        assert result.errors == ()
        for rel_path, content in FILES.items():
            assert (output_dir / rel_path).read_text(encoding="utf-8") == content

        manifest = json.loads((output_dir / MANIFEST_FILE_NAME).read_text(encoding="utf-8"))
        assert manifest["total_files"] == 2
        assert manifest["total_lines"] == 3
        record = manifest["files"][1]
        assert record["relative_path"] == "shop/item_repository_queries.py"
        assert record["sha256"] == sha256_hex(FILES["shop/item_repository_queries.py"])

    def test_manifest_has_no_absolute_paths(self, output_dir: pathlib.Path) -> None:
        FragmentExporter(GenerationConfig(), output_dir).export(FILES)
        text = (output_dir / MANIFEST_FILE_NAME).read_text(encoding="utf-8")
        assert str(output_dir) not in text

    def test_no_temp_files_left_behind(self, output_dir: pathlib.Path) -> None:
        FragmentExporter(GenerationConfig(), output_dir).export(FILES)
        assert not list(output_dir.rglob("*.tmp"))

    def test_non_atomic_writes(self, output_dir: pathlib.Path) -> None:
        result = FragmentExporter(
            GenerationConfig(), output_dir, atomic_writes=False, generate_manifest=False
        ).export(FILES)
        assert result.success
        assert not (output_dir / MANIFEST_FILE_NAME).exists()
        assert (output_dir / "query_fields.py").exists()

    def test_clean_keeps_git_files(self, output_dir: pathlib.Path) -> None:
        output_dir.mkdir()
        (output_dir / ".gitignore").write_text("*\n", encoding="utf-8")
        (output_dir / "old").mkdir()
        (output_dir / "old" / "gone.py").write_text("", encoding="utf-8")

        FragmentExporter(GenerationConfig(), output_dir, clean_before_export=True).export(FILES)

        assert (output_dir / ".gitignore").exists()
        assert not (output_dir / "old").exists()

    def test_write_failure_is_reported(self, output_dir: pathlib.Path) -> None:
        output_dir.mkdir()
        # A file where a directory is needed makes the nested write fail.
        (output_dir / "shop").write_text("", encoding="utf-8")

        result = FragmentExporter(GenerationConfig(), output_dir).export(FILES)

        assert not result.success
        assert len(result.errors) == 1
        assert "shop/item_repository_queries.py" in result.errors[0]
        assert (output_dir / "query_fields.py").exists()
