"""Incremental manifest of per-unit references.

The manifest persists, for every compilation unit, the set of symbol
identities that unit references, so units whose source did not change can be
reused instead of retraced.

Manifest Format: JSON
Location: <project>/.unused_cache/unused.manifest

    {
      "version": 1,
      "exports_digest": "<sha256 of the export index>",
      "units": {
        "pkg.mod": {"fingerprint": "<mtime>:<size>", "calls": [["pkg.util", "helper", 2]]}
      }
    }
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from ..utils.logger import log_warning
from .symbols import SymbolIdentity


MANIFEST_VERSION = 1
MANIFEST_NAME = "unused.manifest"


@dataclass(frozen=True)
class Manifest:
    """Mapping of unit id to referenced identities, plus cache keys."""
    calls: Mapping[str, FrozenSet[SymbolIdentity]] = field(default_factory=dict)
    fingerprints: Mapping[str, Optional[str]] = field(default_factory=dict)
    exports_digest: Optional[str] = None

    @property
    def units(self) -> FrozenSet[str]:
        return frozenset(self.calls)

    def is_empty(self) -> bool:
        return not self.calls


class ManifestCache:
    """Load, merge and atomically persist manifests."""

    @staticmethod
    def load(path: str | Path) -> Manifest:
        """Read a persisted manifest.

        A missing, unreadable or malformed file yields an empty manifest;
        this never fails the calling session.

        Args:
            path: Manifest file path

        Returns:
            Loaded manifest, or an empty one
        """
        path = Path(path)
        if not path.exists():
            return Manifest()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return _decode(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
            log_warning(f"Ignoring unreadable manifest {path}: {e}")
            return Manifest()

    @staticmethod
    def merge(old: Manifest, fresh_units: Iterable[str],
              fresh_data: Mapping[str, Iterable[SymbolIdentity]],
              fingerprints: Optional[Mapping[str, Optional[str]]] = None,
              exports_digest: Optional[str] = None) -> Manifest:
        """Merge one pass's results into a previous manifest.

        Every unit in `fresh_units` is replaced by its entry in `fresh_data`
        (empty when absent). Units of `old` that were not recompiled carry
        over unchanged.

        Args:
            old: Manifest from the previous session
            fresh_units: Units recompiled in this pass
            fresh_data: References recorded in this pass, keyed by unit
            fingerprints: New cache keys for recompiled units
            exports_digest: Digest of the export index of this pass

        Returns:
            New merged manifest
        """
        fresh_units = frozenset(fresh_units)
        fingerprints = fingerprints or {}

        calls = {
            unit: refs for unit, refs in old.calls.items() if unit not in fresh_units
        }
        prints = {
            unit: key for unit, key in old.fingerprints.items() if unit not in fresh_units
        }
        for unit in fresh_units:
            calls[unit] = frozenset(fresh_data.get(unit, ()))
            prints[unit] = fingerprints.get(unit)

        digest = exports_digest if exports_digest is not None else old.exports_digest
        return Manifest(calls=calls, fingerprints=prints, exports_digest=digest)

    @staticmethod
    def prune(manifest: Manifest, live_units: Iterable[str]) -> Manifest:
        """Drop entries of units whose source no longer exists."""
        live_units = frozenset(live_units)
        return Manifest(
            calls={u: c for u, c in manifest.calls.items() if u in live_units},
            fingerprints={u: k for u, k in manifest.fingerprints.items() if u in live_units},
            exports_digest=manifest.exports_digest,
        )

    @staticmethod
    def union(manifest: Manifest) -> FrozenSet[SymbolIdentity]:
        """Every identity referenced by any unit."""
        referenced = set()
        for refs in manifest.calls.values():
            referenced.update(refs)
        return frozenset(referenced)

    @staticmethod
    def save(path: str | Path, manifest: Manifest):
        """Write the manifest atomically (temp file + rename).

        Args:
            path: Manifest file path
            manifest: Manifest to persist
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = path.with_name(path.name + '.tmp')
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(_encode(manifest), f, indent=2, sort_keys=True)
            temp_path.replace(path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

    @staticmethod
    def clean(path: str | Path):
        """Delete the manifest file; a missing file is not an error."""
        path = Path(path)
        path.unlink(missing_ok=True)
        path.with_name(path.name + '.tmp').unlink(missing_ok=True)

    @staticmethod
    def stats(manifest: Manifest) -> Dict[str, int]:
        """Get manifest statistics."""
        return {
            'units': len(manifest.calls),
            'references': sum(len(refs) for refs in manifest.calls.values()),
            'distinct_symbols': len(ManifestCache.union(manifest)),
            'empty_units': sum(1 for refs in manifest.calls.values() if not refs),
        }


def _encode(manifest: Manifest) -> dict:
    units = {}
    for unit in sorted(manifest.calls):
        units[unit] = {
            'fingerprint': manifest.fingerprints.get(unit),
            'calls': [identity.to_list() for identity in sorted(manifest.calls[unit])],
        }
    return {
        'version': MANIFEST_VERSION,
        'exports_digest': manifest.exports_digest,
        'units': units,
    }


def _decode(data) -> Manifest:
    """Validate a decoded JSON payload.

    Raises:
        ValueError: If the payload is not a manifest this version can read
    """
    if not isinstance(data, dict):
        raise ValueError("manifest root is not an object")
    if data.get('version') != MANIFEST_VERSION:
        raise ValueError(f"unsupported manifest version {data.get('version')!r}")

    digest = data.get('exports_digest')
    if digest is not None and not isinstance(digest, str):
        raise ValueError("exports_digest is not a string")

    units = data.get('units')
    if not isinstance(units, dict):
        raise ValueError("'units' is not an object")

    calls = {}
    fingerprints = {}
    for unit, entry in units.items():
        if not isinstance(entry, dict) or not isinstance(entry.get('calls'), list):
            raise ValueError(f"malformed entry for unit {unit!r}")
        fingerprint = entry.get('fingerprint')
        if fingerprint is not None and not isinstance(fingerprint, str):
            raise ValueError(f"malformed fingerprint for unit {unit!r}")
        calls[unit] = frozenset(SymbolIdentity.from_list(item) for item in entry['calls'])
        fingerprints[unit] = fingerprint

    return Manifest(calls=calls, fingerprints=fingerprints, exports_digest=digest)
