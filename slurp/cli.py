from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from slurp import __version__
from slurp.collect import collect_files
from slurp.compression import compress_archive, read_envelope as read_compressed_envelope
from slurp.config import get_kdf_iterations, get_password, load_format_doc
from slurp.encryption import encrypt_archive, read_envelope as read_encrypted_envelope
from slurp.entryutil import human_size
from slurp.errors import PasswordRequired, SlurpError
from slurp.logutil import configure_logging
from slurp.materialize import apply_entries, check_sentinel, copy_staging, verify_entries
from slurp.reader import ArchiveReader, outer_layer
from slurp.writer import ArchiveWriter


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _write_output(output: Optional[str], data: bytes) -> None:
    if not output or output == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.flush()
        return
    tmp = f"{output}.tmp-{os.getpid()}"
    with open(tmp, "wb") as f:
        f.write(data)
    os.replace(tmp, output)


def cmd_pack(
    targets: List[str],
    *,
    output: Optional[str] = None,
    name: Optional[str] = None,
    description: Optional[str] = None,
    sentinel: Optional[str] = None,
    compress: bool = False,
    encrypt: bool = False,
    password: Optional[str] = None,
    excludes: Optional[List[str]] = None,
    base_dir: Optional[str] = None,
    no_checksum: bool = False,
    embed_format_doc: bool = True,
) -> bool:
    """Pack files and directories into an archive.

    Args:
        targets: Files or directories to store.
        output: Destination path; stdout when None or "-".
        compress: Wrap the archive in the gzip layer.
        encrypt: Wrap the archive in the AES-256-GCM layer (compresses internally).
        password: Encryption password; falls back to SLURP_PASSWORD.
    """
    files = collect_files(targets, base_dir=base_dir, excludes=excludes or [])
    if not files:
        raise ValueError("no files found to archive")

    archive_name = name or "archive"
    with ArchiveWriter(
        name=archive_name,
        description=description,
        sentinel=sentinel,
        format_doc=load_format_doc() if embed_format_doc else None,
        no_checksum=no_checksum,
    ) as w:
        for full, rel in files:
            w.add_file(rel, str(full))
        data = w.finalize()

    if encrypt:
        pw = get_password(password)
        if not pw:
            raise PasswordRequired("Encryption requested; provide --password or set SLURP_PASSWORD")
        data = encrypt_archive(data, pw, name=archive_name, iterations=get_kdf_iterations())
    elif compress:
        data = compress_archive(data, name=archive_name)

    _write_output(output, data)
    if output and output != "-":
        print(f"wrote {output} ({len(files)} files)", file=sys.stderr)
    return True


def cmd_list(archive: str, *, password: Optional[str] = None) -> bool:
    """List archive entries."""
    with ArchiveReader(archive, password=get_password(password)) as r:
        meta = r.metadata
        entries = r.list()
        if meta.name:
            print(f"Archive: {meta.name}")
        if meta.description:
            print(f"Description: {meta.description}")
        if meta.created_at:
            print(f"Created: {meta.created_at}")
        if meta.total_size:
            print(f"Total: {meta.total_size}")
        print(f"Files ({len(entries)}):")
        for e in entries:
            tag = " [binary]" if e.is_binary else ""
            print(f"  {e.path}{tag}")
    return True


def cmd_info(archive: str, *, password: Optional[str] = None) -> bool:
    """Show archive metadata and wrapping layers.

    Encrypted archives show their envelope even without a password.
    """
    data = _read_bytes(archive)
    layer = outer_layer(data)
    pw = get_password(password)
    print("SLURP Archive")
    if layer == "encrypted":
        env = read_encrypted_envelope(data)
        print(f"  Encrypted:   yes (v3, {env.iterations or 'default'} PBKDF2 iterations)")
        if env.original_size is not None:
            print(f"  Original:    {human_size(env.original_size)}")
        if not pw:
            print("  Entries:     (password required)")
            return True
    elif layer == "compressed":
        env = read_compressed_envelope(data)
        ratio = f", ratio {env.ratio}" if env.ratio else ""
        print(f"  Compressed:  yes (v2{ratio})")
    else:
        print("  Compressed:  no")

    with ArchiveReader(archive, password=pw) as r:
        meta = r.metadata
        if meta.name:
            print(f"  Name:        {meta.name}")
        if meta.description:
            print(f"  Description: {meta.description}")
        if meta.created_at:
            print(f"  Created:     {meta.created_at}")
        print(f"  Format:      {r.archive.generation}")
        print(f"  Files:       {len(r.list())}")
        if meta.total_size:
            print(f"  Total size:  {meta.total_size}")
        if meta.sentinel:
            print(f"  Sentinel:    {meta.sentinel}")
    return True


def cmd_apply(
    archive: str,
    *,
    outdir: str = ".",
    password: Optional[str] = None,
    staging: Optional[str] = None,
    ignore_sentinel: bool = False,
    quiet: bool = False,
) -> bool:
    """Extract an archive into ``outdir``, optionally through a staging directory."""
    with ArchiveReader(archive, password=get_password(password)) as r:
        entries = r.list()
        name = r.metadata.name or "archive"
        sentinel = None if ignore_sentinel else r.metadata.sentinel

    print(f"applying {name}...")
    if staging:
        check_sentinel(outdir, sentinel)
        staged = apply_entries(entries, staging)
        if not quiet:
            print(f"  staged {len(staged)} files in {staging}")
        written = copy_staging(staging, outdir)
    else:
        written = apply_entries(entries, outdir, sentinel=sentinel)
    if not quiet:
        for e in entries:
            print(f"  {e.path}")
    print(f"done. {len(written)} files extracted.")
    return True


def cmd_verify(archive: str, *, outdir: str = ".", password: Optional[str] = None) -> bool:
    """Compare files under ``outdir`` with the archive contents."""
    with ArchiveReader(archive, password=get_password(password)) as r:
        entries = r.list()
    report = verify_entries(entries, outdir)
    for check in report.checks:
        detail = f" ({check.detail})" if check.detail else ""
        print(f"  {check.status.upper()}: {check.path}{detail}")
    if report.ok:
        print(f"\nAll {len(report.checks)} files verified.")
    else:
        print(f"\n{len(report.failures)} file(s) failed verification.")
    return report.ok


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="slurp",
        description="Self-documenting text archives",
        epilog="Passwords may also be supplied through the SLURP_PASSWORD environment variable.",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_pack = sub.add_parser("pack", help="Pack files into an archive")
    ap_pack.add_argument("targets", nargs="+", help="Input files/directories")
    ap_pack.add_argument("-o", "--output", help="Output file (default: stdout)")
    ap_pack.add_argument("-n", "--name", help="Archive name")
    ap_pack.add_argument("-d", "--description", help="Description")
    ap_pack.add_argument("-s", "--sentinel", help="File that must exist where the archive is applied")
    ap_pack.add_argument("-z", "--compress", action="store_true", help="Wrap in the gzip layer")
    ap_pack.add_argument("-e", "--encrypt", action="store_true", help="Wrap in the AES-256-GCM layer")
    ap_pack.add_argument("--password", help="Encryption password")
    ap_pack.add_argument("-x", "--exclude", action="append", default=[], help="Exclude glob (repeatable)")
    ap_pack.add_argument("-b", "--base-dir", help="Base directory for relative paths")
    ap_pack.add_argument("--no-checksum", action="store_true", help="Skip SHA-256 checksums")
    ap_pack.add_argument("--no-format-doc", action="store_true", help="Do not embed the format description")

    ap_list = sub.add_parser("list", help="List files in an archive")
    ap_list.add_argument("archive", help="Archive path")
    ap_list.add_argument("--password", help="Archive password")

    ap_info = sub.add_parser("info", help="Show archive metadata")
    ap_info.add_argument("archive", help="Archive path")
    ap_info.add_argument("--password", help="Archive password")

    ap_apply = sub.add_parser("apply", help="Extract files")
    ap_apply.add_argument("archive", help="Archive path")
    ap_apply.add_argument("--outdir", default=".", help="Output directory")
    ap_apply.add_argument("--password", help="Archive password")
    ap_apply.add_argument("--staging", help="Extract here first, then copy into --outdir")
    ap_apply.add_argument("--ignore-sentinel", action="store_true", help="Apply even if the sentinel file is missing")
    ap_apply.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_verify = sub.add_parser("verify", help="Verify extracted files against an archive")
    ap_verify.add_argument("archive", help="Archive path")
    ap_verify.add_argument("--outdir", default=".", help="Directory holding the extracted files")
    ap_verify.add_argument("--password", help="Archive password")

    args = ap.parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None)
    try:
        if args.cmd == "pack":
            cmd_pack(
                args.targets,
                output=args.output,
                name=args.name,
                description=args.description,
                sentinel=args.sentinel,
                compress=args.compress,
                encrypt=args.encrypt,
                password=args.password,
                excludes=args.exclude,
                base_dir=args.base_dir,
                no_checksum=args.no_checksum,
                embed_format_doc=not args.no_format_doc,
            )
        elif args.cmd == "list":
            cmd_list(args.archive, password=args.password)
        elif args.cmd == "info":
            cmd_info(args.archive, password=args.password)
        elif args.cmd == "apply":
            cmd_apply(
                args.archive,
                outdir=args.outdir,
                password=args.password,
                staging=args.staging,
                ignore_sentinel=args.ignore_sentinel,
                quiet=args.quiet,
            )
        elif args.cmd == "verify":
            ok = cmd_verify(args.archive, outdir=args.outdir, password=args.password)
            sys.exit(0 if ok else 1)
        else:
            raise RuntimeError("Unknown command")
    except (SlurpError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
