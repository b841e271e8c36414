#!/usr/bin/env python3
"""Build or verify the SHA256MANIFEST of the raw source tree.

Format: '#' comment lines, then one line per file:
  <hex sha256><two spaces><path relative to the raw dir>

Only files whose extension is listed in corpus.yaml `manifest_extensions`
(default .htm and .xml) are hashed. Lines are sorted by path.

Usage:
  python -m kjvtools.manifest build --raw raw
  python -m kjvtools.manifest verify --raw raw
"""

from __future__ import annotations

import argparse
import hashlib
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from kjvtools.console import abort, rule
from kjvtools.errors import CorpusError, FileError
from kjvtools.metadata import CorpusConfig, load_config

MANIFEST_FILENAME = "SHA256MANIFEST"


def sha256_file(path: str | Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            h.update(chunk)
    return h.hexdigest()


def utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def collect_files(raw_dir: Path, extensions) -> list[str]:
    """Relative POSIX paths of every file under raw_dir with a listed extension."""
    exts = {e.lower() for e in extensions}
    out = []
    for root, dirs, files in os.walk(raw_dir):
        dirs.sort()
        for fn in files:
            if os.path.splitext(fn)[1].lower() in exts:
                rel = os.path.relpath(os.path.join(root, fn), raw_dir)
                out.append(rel.replace(os.sep, "/"))
    return sorted(out)


def build_manifest(raw_dir: Path | str, config: CorpusConfig | None = None) -> Path:
    """Write <raw_dir>/SHA256MANIFEST. Returns its path."""
    config = config or CorpusConfig()
    raw = Path(raw_dir)
    if not raw.is_dir():
        raise FileError("raw directory does not exist", path=str(raw))

    lines = [
        f"# SHA256 manifest of raw {config.work} sources",
        f"# Generated: {utc_now()}",
    ]
    for rel in collect_files(raw, config.manifest_extensions):
        lines.append(f"{sha256_file(raw / rel)}  {rel}")

    path = raw / MANIFEST_FILENAME
    try:
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write("\n".join(lines) + "\n")
    except OSError as e:
        raise FileError(f"failed to write manifest: {e}", path=str(path)) from e
    return path


@dataclass
class ManifestReport:
    files: int = 0
    mismatches: int = 0
    read_errors: int = 0
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.mismatches == 0 and self.read_errors == 0


def verify_manifest(raw_dir: Path | str) -> ManifestReport:
    """Re-hash every file listed in the manifest. Malformed lines count as read errors."""
    raw = Path(raw_dir)
    if not raw.is_dir():
        raise FileError("raw directory does not exist", path=str(raw))
    manifest = raw / MANIFEST_FILENAME
    if not manifest.is_file():
        raise FileError("manifest file not found in raw directory", path=str(manifest))

    report = ManifestReport()
    with open(manifest, encoding="utf-8") as f:
        for line in f:
            line = line.rstrip("\n")
            if not line.strip() or line.startswith("#"):
                continue
            expected, sep, rel = line.partition("  ")
            if not sep or not rel or len(expected) != 64:
                report.read_errors += 1
                report.problems.append(f"invalid line format - {line}")
                continue

            report.files += 1
            target = Path(rel) if os.path.isabs(rel) else raw / rel
            try:
                actual = sha256_file(target)
            except OSError as e:
                report.read_errors += 1
                report.problems.append(f"cannot read file {rel} - {e}")
                continue
            if actual != expected.lower():
                report.mismatches += 1
                report.problems.append(f"hash mismatch for {rel}: expected {expected}, got {actual}")
    return report


def print_report(report: ManifestReport):
    for p in report.problems:
        print(f"Manifest error: {p}")
    print(rule())
    print(f"Total Files Verified: {report.files}")
    print(f"Hash Mismatches: {report.mismatches}")
    print(f"Read Errors: {report.read_errors}")
    print(rule())


def main():
    parser = argparse.ArgumentParser(description="Build or verify the raw source SHA256MANIFEST")
    sub = parser.add_subparsers(dest="command", required=True)
    for name in ("build", "verify"):
        p = sub.add_parser(name)
        p.add_argument("--raw", default="raw", help="Raw source directory")
        p.add_argument("--config", default=None, help="Corpus config (default: config/corpus.yaml)")
    args = parser.parse_args()

    try:
        config = load_config(args.config)
        if args.command == "build":
            path = build_manifest(args.raw, config)
            print(f"Wrote {path}")
            return
        report = verify_manifest(args.raw)
    except CorpusError as e:
        abort(str(e))

    print_report(report)
    if not report.ok:
        print(f"Manifest validation failed: {report.mismatches} mismatches, {report.read_errors} errors")
        sys.exit(1)
    print("Manifest validation completed successfully")


if __name__ == "__main__":
    main()
