"""
lootspot/data/codec.py

Persistence codec for the reward table.

On-disk document (pretty-printed JSON), nested by category:

    {
      "<category>": {
        "<world>|<x>|<y>|<z>": {
          "dimension": "<world>",
          "position": {"x": 1, "y": 2, "z": 3},
          "rewardItem": {"nbt": "..."} | {"item": "<id>", "count": 1} | {"empty": true},
          "claimedPlayers": ["<actor id>", ...]
        }
      }
    }

Two legacy shapes are accepted on read and rewritten in the nested shape on
the next save:
- flat: the root maps location keys straight to record objects
- wrapped: {"categories": [...], "entries": {...}}

Payloads go through a pluggable PayloadCodec. Encoding falls back to a
{"item", "count"} stub when the codec cannot encode a payload. A payload
that fails to decode skips that one entry; it never aborts the load.
"""

import os
import json
import logging
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..config import DEFAULT_CATEGORY
from .record import LocationKey, LocationKeyError, RewardRecord

logger = logging.getLogger("lootspot.data.codec")


# Resolves a world identifier to whatever the payload codec needs
# (registries, world handle). Returns None for unknown worlds.
WorldResolver = Callable[[str], Optional[Any]]

# Keys that mark a JSON object as a record rather than a category mapping
RECORD_FIELDS = frozenset({"dimension", "position", "rewardItem", "claimedPlayers"})

# Keys allowed at the root of the wrapped legacy layout
WRAPPED_ROOT_KEYS = frozenset({"categories", "entries", "version"})


class PayloadCodecError(Exception):
    """Raised by a PayloadCodec when a payload cannot be encoded or decoded."""


# ============================================================================
# PAYLOAD CODECS
# ============================================================================

class PayloadCodec(ABC):
    """
    Converts reward payloads to text and back.

    needs_context tells the persistence codec whether decode() requires a
    resolved world context. Entries are skipped (not failed) while no
    context is available.
    """

    needs_context: bool = True

    @abstractmethod
    def encode(self, payload: Any, context: Any) -> str:
        """Encode a payload. Raises PayloadCodecError on failure."""
        pass

    @abstractmethod
    def decode(self, data: str, context: Any) -> Any:
        """Decode a payload. Raises PayloadCodecError on failure."""
        pass

    def describe(self, payload: Any) -> Tuple[str, int]:
        """(item id, count) used for the stub written when encode fails."""
        return ("unknown", 1)

    def from_stub(self, item_id: str, count: int, context: Any) -> Any:
        """Rebuild a payload from an {"item", "count"} stub."""
        raise PayloadCodecError(f"Cannot rebuild payload from stub {item_id!r}")

    def is_empty(self, payload: Any) -> bool:
        return payload is None


class JsonPayloadCodec(PayloadCodec):
    """
    Payloads are plain JSON values (typically {"item": id, "count": n, ...}).

    Works without a world context, so it is what the maintenance CLI and
    tests use.
    """

    needs_context = False

    def encode(self, payload: Any, context: Any) -> str:
        try:
            return json.dumps(payload, sort_keys=True, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise PayloadCodecError(f"Payload is not JSON serializable: {e}")

    def decode(self, data: str, context: Any) -> Any:
        if not isinstance(data, str):
            raise PayloadCodecError(f"Expected encoded string, got {type(data).__name__}")
        try:
            return json.loads(data)
        except ValueError as e:
            raise PayloadCodecError(f"Malformed payload: {e}")

    def describe(self, payload: Any) -> Tuple[str, int]:
        if isinstance(payload, dict):
            try:
                count = int(payload.get("count", 1))
            except (TypeError, ValueError):
                count = 1
            return (str(payload.get("item", "unknown")), count)
        return (type(payload).__name__, 1)

    def from_stub(self, item_id: str, count: int, context: Any) -> Any:
        return {"item": item_id, "count": count}

    def is_empty(self, payload: Any) -> bool:
        return payload is None or payload == {} or payload == [] or payload == ""


# ============================================================================
# LOAD RESULTS
# ============================================================================

class StoreLayout(Enum):
    """Shape of the document that was read."""
    NESTED = "nested"
    FLAT = "flat"
    WRAPPED = "wrapped"
    MISSING = "missing"
    INVALID = "invalid"


class EntryStatus(Enum):
    """Outcome of decoding a single entry."""
    LOADED = "loaded"
    SKIPPED = "skipped"     # no world context yet; retry on a later reload
    FAILED = "failed"       # corrupt entry; dropped


@dataclass
class EntryResult:
    """Result of decoding one entry of the document."""
    key: str
    status: EntryStatus
    category: str = DEFAULT_CATEGORY
    record: Optional[RewardRecord] = None
    raw: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == EntryStatus.LOADED


@dataclass
class LoadReport:
    """
    Everything a load produced.

    error is set only when the whole document could not be used; per-entry
    problems end up in skipped/failed instead.
    """
    layout: StoreLayout
    records: Dict[LocationKey, RewardRecord] = field(default_factory=dict)
    categories: Set[str] = field(default_factory=set)
    skipped: List[EntryResult] = field(default_factory=list)
    failed: List[EntryResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def loaded_count(self) -> int:
        return len(self.records)

    @property
    def is_total_failure(self) -> bool:
        return self.error is not None

    @property
    def needs_migration(self) -> bool:
        return self.layout in (StoreLayout.FLAT, StoreLayout.WRAPPED)

    def to_dict(self) -> dict:
        return {
            'layout': self.layout.value,
            'loaded': self.loaded_count,
            'categories': sorted(self.categories),
            'skipped': [r.key for r in self.skipped],
            'failed': [r.key for r in self.failed],
            'error': self.error,
        }


# ============================================================================
# PERSISTENCE CODEC
# ============================================================================

def _is_record_shaped(value: Any) -> bool:
    return isinstance(value, dict) and not RECORD_FIELDS.isdisjoint(value.keys())


class PersistenceCodec:
    """
    Encodes the whole reward table to the nested JSON document and back.

    Usage:
        codec = PersistenceCodec(JsonPayloadCodec())
        document = codec.encode_document(records, categories, resolver)
        codec.write_file(path, document)

        report = codec.read_file(path, resolver)
        for record in report.records.values():
            ...
    """

    def __init__(self, payload_codec: Optional[PayloadCodec] = None):
        self.payload_codec = payload_codec or JsonPayloadCodec()

    # ------------------------------------------------------------------ encode

    def encode_payload(self, payload: Any, context: Any) -> dict:
        """Encode a payload into the rewardItem object."""
        codec = self.payload_codec
        if codec.is_empty(payload):
            return {"empty": True}
        try:
            return {"nbt": codec.encode(payload, context)}
        except (PayloadCodecError, KeyError, TypeError, ValueError) as e:
            item_id, count = codec.describe(payload)
            logger.warning(f"Payload encode failed, writing stub for {item_id}: {e}")
            return {"item": item_id, "count": count}

    def encode_record(self, record: RewardRecord, context: Any = None) -> dict:
        """Encode a single record object."""
        location = record.location
        return {
            "dimension": location.world,
            "position": {"x": location.x, "y": location.y, "z": location.z},
            "rewardItem": self.encode_payload(record.payload, context),
            "claimedPlayers": sorted(record.claimants),
        }

    def encode_document(
        self,
        records: Iterable[RewardRecord],
        categories: Iterable[str] = (),
        resolver: Optional[WorldResolver] = None,
        pending: Iterable[EntryResult] = (),
    ) -> Dict[str, Dict[str, dict]]:
        """
        Build the nested document.

        Args:
            records: Live records
            categories: Known categories (written even when empty)
            resolver: World resolver for payload encoding contexts
            pending: Entries skipped on load, written back verbatim unless a
                live record now occupies the same key

        Returns:
            Mapping category -> location key -> record object
        """
        document: Dict[str, Dict[str, dict]] = {}
        for category in sorted(set(categories) | {DEFAULT_CATEGORY}):
            document[category] = {}

        live_keys = set()
        contexts: Dict[str, Any] = {}
        for record in sorted(records, key=lambda r: (r.category, r.key)):
            world = record.location.world
            if world not in contexts:
                contexts[world] = resolver(world) if resolver else None
            document.setdefault(record.category, {})[record.key] = self.encode_record(
                record, contexts[world]
            )
            live_keys.add(record.key)

        for entry in pending:
            if entry.key in live_keys or entry.raw is None:
                continue
            document.setdefault(entry.category, {})[entry.key] = entry.raw

        return document

    def dumps(self, document: dict) -> str:
        return json.dumps(document, indent=2) + "\n"

    def write_file(self, path: Path, document: dict) -> None:
        """
        Write the document atomically (temp file + rename).

        Raises:
            OSError: if the file cannot be written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        text = self.dumps(document)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    # ------------------------------------------------------------------ decode

    def decode_payload(self, item: Any, context: Any) -> Any:
        """
        Decode a rewardItem object.

        Raises:
            PayloadCodecError: for unrecognised or undecodable items
        """
        if not isinstance(item, dict):
            raise PayloadCodecError("rewardItem is not an object")
        if item.get("empty") is True:
            return None
        if "nbt" in item:
            return self.payload_codec.decode(item["nbt"], context)
        if "item" in item and "count" in item:
            try:
                count = int(item["count"])
            except (TypeError, ValueError):
                raise PayloadCodecError(f"Invalid stub count: {item['count']!r}")
            return self.payload_codec.from_stub(str(item["item"]), count, context)
        raise PayloadCodecError(f"Unrecognised rewardItem fields: {sorted(item)}")

    def decode_record(
        self,
        key: str,
        obj: Any,
        category: str = DEFAULT_CATEGORY,
        resolver: Optional[WorldResolver] = None,
    ) -> EntryResult:
        """Decode one record object, never raising."""
        result = EntryResult(key=key, status=EntryStatus.FAILED, category=category, raw=obj)
        if not isinstance(obj, dict):
            result.error = "entry is not an object"
            return result

        try:
            world = obj["dimension"]
            if not isinstance(world, str) or not world:
                raise ValueError(f"invalid dimension {world!r}")
            position = obj["position"]
            location = LocationKey(
                world, int(position["x"]), int(position["y"]), int(position["z"])
            )
            item = obj["rewardItem"]
            claimed = obj.get("claimedPlayers")
            if claimed is None:
                claimed = []
            elif not isinstance(claimed, list):
                raise TypeError(f"claimedPlayers is {type(claimed).__name__}, expected list")
        except (KeyError, TypeError, ValueError) as e:
            result.error = f"missing or invalid field: {e}"
            return result

        if location.to_string() != key:
            try:
                LocationKey.from_string(key)
            except LocationKeyError:
                logger.debug(f"Entry key {key!r} is not a location key, using {location}")
            else:
                logger.debug(f"Entry key {key!r} disagrees with its fields, using {location}")

        context = None
        if resolver is not None:
            context = resolver(world)
            if context is None:
                result.status = EntryStatus.SKIPPED
                result.error = f"unknown world {world}"
                return result
        elif self.payload_codec.needs_context:
            result.status = EntryStatus.SKIPPED
            result.error = "no world context"
            return result

        try:
            payload = self.decode_payload(item, context)
        except (PayloadCodecError, KeyError, TypeError, ValueError) as e:
            result.error = f"payload decode failed: {e}"
            return result

        claimants = set()
        for actor in claimed:
            if isinstance(actor, str) and actor:
                claimants.add(actor)
            else:
                logger.debug(f"Ignoring invalid claimant {actor!r} in {key}")

        result.record = RewardRecord(
            location=location,
            payload=payload,
            claimants=claimants,
            category=category,
        )
        result.status = EntryStatus.LOADED
        return result

    def _decode_entries(
        self,
        mapping: Dict[str, Any],
        report: LoadReport,
        resolver: Optional[WorldResolver],
    ) -> Tuple[int, int]:
        """Decode a root-level mapping. Returns (flat entries, category groups)."""
        flat = 0
        groups = 0
        for key, value in mapping.items():
            if _is_record_shaped(value):
                flat += 1
                category = value.get("category") or DEFAULT_CATEGORY
                if not isinstance(category, str):
                    category = DEFAULT_CATEGORY
                self._add_result(report, self.decode_record(key, value, category, resolver))
            elif isinstance(value, dict):
                groups += 1
                report.categories.add(key)
                for entry_key, entry in value.items():
                    self._add_result(report, self.decode_record(entry_key, entry, key, resolver))
            else:
                self._add_result(report, EntryResult(
                    key=key,
                    status=EntryStatus.FAILED,
                    raw=value,
                    error="entry is not an object",
                ))
        return flat, groups

    def _add_result(self, report: LoadReport, result: EntryResult) -> None:
        if result.status == EntryStatus.LOADED:
            record = result.record
            if record.location in report.records:
                logger.warning(f"Duplicate reward at {record.key}, keeping category {record.category}")
            report.records[record.location] = record
            report.categories.add(record.category)
        elif result.status == EntryStatus.SKIPPED:
            logger.debug(f"Skipped reward entry {result.key}: {result.error}")
            report.skipped.append(result)
            report.categories.add(result.category)
        else:
            logger.warning(f"Failed to load reward entry {result.key}: {result.error}")
            report.failed.append(result)

    def decode_document(
        self,
        document: Any,
        resolver: Optional[WorldResolver] = None,
    ) -> LoadReport:
        """
        Decode a parsed document in any supported layout.

        A root object carrying an "entries" object next to a "categories"
        list is the wrapped layout. Otherwise every root value is probed: a
        record-shaped object is a flat legacy entry, any other object is a
        category mapping.
        """
        if not isinstance(document, dict):
            return LoadReport(
                layout=StoreLayout.INVALID,
                error=f"root is {type(document).__name__}, expected object",
            )

        if (
            isinstance(document.get("entries"), dict)
            and isinstance(document.get("categories"), list)
            and set(document.keys()) <= WRAPPED_ROOT_KEYS
        ):
            report = LoadReport(layout=StoreLayout.WRAPPED)
            for name in document["categories"]:
                if isinstance(name, str) and name:
                    report.categories.add(name)
            self._decode_entries(document["entries"], report, resolver)
        else:
            report = LoadReport(layout=StoreLayout.NESTED)
            flat, _ = self._decode_entries(document, report, resolver)
            if flat:
                report.layout = StoreLayout.FLAT

        report.categories.add(DEFAULT_CATEGORY)
        return report

    def loads(self, text: str, resolver: Optional[WorldResolver] = None) -> LoadReport:
        try:
            document = json.loads(text)
        except ValueError as e:
            logger.error(f"Malformed reward document: {e}")
            return LoadReport(layout=StoreLayout.INVALID, error=f"malformed JSON: {e}")
        return self.decode_document(document, resolver)

    def read_file(self, path: Path, resolver: Optional[WorldResolver] = None) -> LoadReport:
        """
        Read and decode the storage file.

        A missing file yields an empty report; an unreadable or malformed
        file yields an empty report with error set. Never raises.
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"No reward file at {path}")
            report = LoadReport(layout=StoreLayout.MISSING)
            report.categories.add(DEFAULT_CATEGORY)
            return report
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read reward file {path}: {e}")
            return LoadReport(layout=StoreLayout.INVALID, error=str(e))
        return self.loads(text, resolver)
