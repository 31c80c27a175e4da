from __future__ import annotations

import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from typing import Dict

from slurp.reader import ArchiveReader


def _build_fixture_tree(root: Path) -> Dict[str, bytes]:
    files: Dict[str, bytes] = {}
    (root / "docs" / "notes").mkdir(parents=True)
    content = b"hello world\n" * 20
    (root / "docs" / "readme.txt").write_bytes(content)
    files["docs/readme.txt"] = content

    bin_data = os.urandom(2048) + b"\x00"
    (root / "docs" / "notes" / "binary.bin").write_bytes(bin_data)
    files["docs/notes/binary.bin"] = bin_data

    (root / "docs" / "notes" / "empty.txt").write_bytes(b"")
    # empty text files are applied as a single newline
    files["docs/notes/empty.txt"] = b"\n"

    (root / "setup.cfg").write_bytes(b"[metadata]\nname = demo\n")
    files["setup.cfg"] = b"[metadata]\nname = demo\n"
    return files


def _compare_trees(expected: Dict[str, bytes], dst: Path):
    for rel, data in expected.items():
        path = dst / rel
        assert path.is_file(), f"Missing file: {path}"
        assert path.read_bytes() == data, f"File contents differ: {path}"


class CLIIntegrationTests(unittest.TestCase):
    def run_cli(self, args, *, expect: int | None = 0, cwd: Path | None = None, env_extra=None):
        cmd = [sys.executable, "-m", "slurp.cli"] + list(args)
        env = os.environ.copy()
        env.pop("SLURP_PASSWORD", None)
        env["SLURP_KDF_ITERATIONS"] = "1000"
        env.update(env_extra or {})
        repo_root = Path(__file__).resolve().parent
        existing = env.get("PYTHONPATH", "")
        env["PYTHONPATH"] = str(repo_root) if not existing else f"{repo_root}{os.pathsep}{existing}"
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
        )
        if expect is not None and proc.returncode != expect:
            raise AssertionError(
                f"CLI exited {proc.returncode}, expected {expect}\nCommand: {' '.join(cmd)}\nSTDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}"
            )
        return proc

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.workspace = Path(self._tmp.name)
        self.src = self.workspace / "src"
        self.src.mkdir()
        self.files = _build_fixture_tree(self.src)

    def test_plain_pack_list_apply_verify(self):
        archive = self.workspace / "demo.slurp.sh"
        pack = self.run_cli(["pack", str(self.src), "-o", str(archive), "-n", "demo", "-d", "fixture tree"])
        self.assertIn("(4 files)", pack.stderr)
        self.assertTrue(archive.read_text(encoding="utf-8").startswith("# --- SLURP v4 ---"))

        listing = self.run_cli(["list", str(archive)])
        self.assertIn("Archive: demo", listing.stdout)
        self.assertIn("docs/notes/binary.bin [binary]", listing.stdout)
        self.assertIn("docs/readme.txt", listing.stdout)

        out = self.workspace / "out"
        apply_proc = self.run_cli(["apply", str(archive), "--outdir", str(out)])
        self.assertIn("done. 4 files extracted.", apply_proc.stdout)
        _compare_trees(self.files, out)

        verify_proc = self.run_cli(["verify", str(archive), "--outdir", str(out)])
        self.assertIn("All 4 files verified.", verify_proc.stdout)

        (out / "docs" / "readme.txt").write_bytes(b"changed\n")
        (out / "setup.cfg").unlink()
        bad = self.run_cli(["verify", str(archive), "--outdir", str(out)], expect=1)
        self.assertIn("MISMATCH: docs/readme.txt", bad.stdout)
        self.assertIn("MISSING: setup.cfg", bad.stdout)
        self.assertIn("2 file(s) failed verification.", bad.stdout)

    def test_pack_to_stdout(self):
        proc = self.run_cli(["pack", str(self.src / "setup.cfg"), "--no-format-doc"])
        self.assertTrue(proc.stdout.startswith("# --- SLURP v4 ---"))
        self.assertIn("=== setup.cfg ===", proc.stdout)
        self.assertNotIn("## ", proc.stdout)

    def test_compressed_roundtrip(self):
        archive = self.workspace / "demo.slurp.sh"
        self.run_cli(["pack", str(self.src), "-z", "-o", str(archive)])
        self.assertTrue(archive.read_text(encoding="utf-8").startswith("# --- SLURP v2 (compressed) ---"))
        info = self.run_cli(["info", str(archive)])
        self.assertIn("Compressed:  yes", info.stdout)
        self.assertIn("Files:       4", info.stdout)

        with ArchiveReader(str(archive)) as r:
            self.assertEqual(r.layers, ["compressed"])
            self.assertEqual(sorted(e.path for e in r.list()), sorted(self.files))

        out = self.workspace / "out"
        self.run_cli(["apply", str(archive), "--outdir", str(out), "--quiet"])
        _compare_trees(self.files, out)

    def test_encrypted_roundtrip(self):
        archive = self.workspace / "secret.slurp.sh"
        env = {"SLURP_PASSWORD": "correct horse"}
        self.run_cli(["pack", str(self.src), "-e", "-o", str(archive)], env_extra=env)
        text = archive.read_text(encoding="utf-8")
        self.assertTrue(text.startswith("# --- SLURP v3 (encrypted) ---"))
        self.assertNotIn("hello world", text)

        info = self.run_cli(["info", str(archive)])
        self.assertIn("Encrypted:   yes", info.stdout)
        self.assertIn("(password required)", info.stdout)

        missing = self.run_cli(["list", str(archive)], expect=2)
        self.assertIn("Error:", missing.stderr)
        wrong = self.run_cli(["list", str(archive), "--password", "nope"], expect=2)
        self.assertIn("password", wrong.stderr.lower())

        out = self.workspace / "out"
        self.run_cli(["apply", str(archive), "--outdir", str(out)], env_extra=env)
        _compare_trees(self.files, out)
        self.run_cli(["verify", str(archive), "--outdir", str(out), "--password", "correct horse"])

    def test_encrypt_without_password_fails(self):
        archive = self.workspace / "secret.slurp.sh"
        proc = self.run_cli(["pack", str(self.src), "-e", "-o", str(archive)], expect=2)
        self.assertIn("Error:", proc.stderr)
        self.assertFalse(archive.exists())

    def test_sentinel_and_staging(self):
        archive = self.workspace / "demo.slurp.sh"
        self.run_cli(["pack", str(self.src), "-s", "setup.cfg", "-o", str(archive)])

        empty = self.workspace / "empty"
        empty.mkdir()
        refused = self.run_cli(["apply", str(archive), "--outdir", str(empty)], expect=2)
        self.assertIn("setup.cfg", refused.stderr)
        self.assertEqual(list(empty.iterdir()), [])

        self.run_cli(["apply", str(archive), "--outdir", str(empty), "--ignore-sentinel"])
        _compare_trees(self.files, empty)

        staged_out = self.workspace / "staged_out"
        staged_out.mkdir()
        (staged_out / "setup.cfg").write_bytes(b"placeholder\n")
        staging = self.workspace / "staging"
        proc = self.run_cli(
            ["apply", str(archive), "--outdir", str(staged_out), "--staging", str(staging)]
        )
        self.assertIn("staged 4 files", proc.stdout)
        _compare_trees(self.files, staged_out)

    def test_bad_input(self):
        self.run_cli(["bogus"], expect=2)
        junk = self.workspace / "junk.txt"
        junk.write_text("not an archive\n")
        proc = self.run_cli(["list", str(junk)], expect=2)
        self.assertIn("Error:", proc.stderr)
        self.run_cli(["list", str(self.workspace / "missing.slurp.sh")], expect=2)


if __name__ == "__main__":
    unittest.main()
