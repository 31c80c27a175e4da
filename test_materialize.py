from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from slurp.collect import collect_files
from slurp.config import get_kdf_iterations, get_password, load_format_doc
from slurp.entryutil import Entry
from slurp.errors import PathTraversal, SentinelMissing
from slurp.materialize import apply_entries, copy_staging, verify_entries
from slurp.pathutil import norm_path, resolve_within


class PathGuardTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.base = Path(self._tmp.name) / "base"
        self.base.mkdir()

    def test_rejects_traversal_and_absolute(self):
        for bad in ("../x", "/etc/passwd", "a/../../x", "a/b/../../../x", "..", "", "C:/Windows/x", "\\\\server\\share"):
            with self.subTest(path=bad):
                with self.assertRaises(PathTraversal):
                    resolve_within(bad, self.base)

    def test_allows_normal_paths(self):
        resolved = resolve_within("a/b.txt", self.base)
        self.assertEqual(resolved, self.base.resolve() / "a" / "b.txt")
        self.assertIn(self.base.resolve(), resolved.parents)
        self.assertEqual(resolve_within("foo..bar.txt", self.base).name, "foo..bar.txt")
        self.assertEqual(resolve_within("./x/./y.txt", self.base), self.base.resolve() / "x" / "y.txt")

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks unavailable")
    def test_rejects_escape_through_existing_symlink(self):
        outside = Path(self._tmp.name) / "outside"
        outside.mkdir()
        try:
            os.symlink(str(outside), str(self.base / "link"))
        except OSError:
            self.skipTest("cannot create symlinks")
        with self.assertRaises(PathTraversal):
            resolve_within("link/x.txt", self.base)

    def test_norm_path(self):
        self.assertEqual(norm_path("\\a\\b//./c/"), "a/b/c")
        with self.assertRaises(PathTraversal):
            norm_path("a/../b")


class MaterializeTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.out = self.root / "out"

    def test_apply_writes_text_and_binary(self):
        blob = bytes(range(256))
        entries = [
            Entry.from_bytes("docs/readme.txt", b"no newline"),
            Entry.from_bytes("docs/empty.txt", b""),
            Entry.from_bytes("bin/data.bin", blob),
        ]
        written = apply_entries(entries, self.out)
        self.assertEqual(len(written), 3)
        self.assertEqual((self.out / "docs" / "readme.txt").read_bytes(), b"no newline\n")
        self.assertEqual((self.out / "docs" / "empty.txt").read_bytes(), b"\n")
        self.assertEqual((self.out / "bin" / "data.bin").read_bytes(), blob)
        self.assertTrue(verify_entries(entries, self.out).ok)

    def test_apply_halts_at_first_unsafe_path(self):
        entries = [
            Entry.from_bytes("first.txt", b"1\n"),
            Entry("../escaped.txt", b"evil\n", False, 5),
            Entry.from_bytes("third.txt", b"3\n"),
        ]
        with self.assertRaises(PathTraversal) as ctx:
            apply_entries(entries, self.out)
        self.assertEqual(ctx.exception.path, "../escaped.txt")
        self.assertTrue((self.out / "first.txt").exists())
        self.assertFalse((self.root / "escaped.txt").exists())
        self.assertFalse((self.out / "third.txt").exists())

    def test_sentinel(self):
        entries = [Entry.from_bytes("a.txt", b"a\n")]
        self.out.mkdir()
        with self.assertRaises(SentinelMissing):
            apply_entries(entries, self.out, sentinel="package.json")
        self.assertFalse((self.out / "a.txt").exists())
        (self.out / "package.json").write_text("{}")
        apply_entries(entries, self.out, sentinel="package.json")
        self.assertTrue((self.out / "a.txt").exists())

    def test_verify_reports_every_file(self):
        entries = [
            Entry.from_bytes("ok.txt", b"ok\n"),
            Entry.from_bytes("changed.txt", b"before\n"),
            Entry.from_bytes("gone.txt", b"gone\n"),
            Entry("/etc/passwd", b"x", False, 1),
        ]
        apply_entries(entries[:3], self.out)
        (self.out / "changed.txt").write_bytes(b"after\n")
        (self.out / "gone.txt").unlink()
        report = verify_entries(entries, self.out)
        statuses = {c.path: c.status for c in report.checks}
        self.assertEqual(
            statuses,
            {"ok.txt": "ok", "changed.txt": "mismatch", "gone.txt": "missing", "/etc/passwd": "unsafe"},
        )
        self.assertFalse(report.ok)
        self.assertEqual(len(report.failures), 3)

    def test_copy_staging(self):
        stage = self.root / "stage"
        entries = [Entry.from_bytes("a/b.txt", b"b\n"), Entry.from_bytes("c.bin", b"\x00\x01")]
        apply_entries(entries, stage)
        copied = copy_staging(stage, self.out)
        self.assertEqual(len(copied), 2)
        self.assertTrue(verify_entries(entries, self.out).ok)

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks unavailable")
    def test_copy_staging_refuses_symlinks(self):
        stage = self.root / "stage"
        stage.mkdir()
        target = self.root / "secret.txt"
        target.write_text("secret")
        try:
            os.symlink(str(target), str(stage / "link.txt"))
        except OSError:
            self.skipTest("cannot create symlinks")
        with self.assertRaises(PathTraversal):
            copy_staging(stage, self.out)


class CollectAndConfigTests(unittest.TestCase):
    def test_collect_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp) / "proj"
            (root / "src").mkdir(parents=True)
            (root / ".git").mkdir()
            (root / "node_modules" / "dep").mkdir(parents=True)
            (root / "src" / "b.py").write_text("b")
            (root / "src" / "a.py").write_text("a")
            (root / "src" / "skip.log").write_text("log")
            (root / ".git" / "HEAD").write_text("ref")
            (root / "node_modules" / "dep" / "x.js").write_text("x")
            (root / "README.md").write_text("r")

            found = collect_files([str(root)], excludes=["*.log"])
            self.assertEqual([rel for _, rel in found], ["README.md", "src/a.py", "src/b.py"])
            self.assertTrue(all(full.is_absolute() for full, _ in found))

            single = collect_files([str(root / "src" / "a.py"), str(root / "src" / "a.py")])
            self.assertEqual([rel for _, rel in single], ["a.py"])

            with self.assertRaises(FileNotFoundError):
                collect_files([str(root / "missing")])

    def test_password_from_environment(self):
        with mock.patch.dict(os.environ, {"SLURP_PASSWORD": "from-env"}):
            self.assertEqual(get_password(None), "from-env")
            self.assertEqual(get_password("explicit"), "explicit")
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(get_password(None))

    def test_kdf_iterations(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(get_kdf_iterations(), 100_000)
        with mock.patch.dict(os.environ, {"SLURP_KDF_ITERATIONS": "5000"}):
            self.assertEqual(get_kdf_iterations(), 5000)
        for bad in ("abc", "0"):
            with mock.patch.dict(os.environ, {"SLURP_KDF_ITERATIONS": bad}):
                with self.assertRaises(ValueError):
                    get_kdf_iterations()

    def test_format_doc_is_packaged(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            doc = load_format_doc()
        self.assertIsNotNone(doc)
        self.assertIn("slurp format", doc)
        self.assertIsNone(load_format_doc("/nonexistent/FORMAT.md"))


if __name__ == "__main__":
    unittest.main()
