"""
Document store — owner-scoped pools, daily entries and settings on disk.

Saves to data/lpdash.json (or LPDASH_DATA_FILE):
  - pools:          pool_id -> Pool record
  - daily_entries:  entry_id -> DailyEntry record
  - user_settings:  owner_id -> {usd_to_brl}
  - platforms:      platform names added by users

Writes go through `batch_write`, which applies a list of operations
atomically: the batch is staged on a copy, written to disk (tmp then
rename) and only then made visible. Subscribers get a fresh
(pools, entries) snapshot for their owner after every committed batch.

Pass path=None for a purely in-memory store.
"""
import copy
import json
import os
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from lpdash.exceptions import DocumentNotFoundError, StoreError
from lpdash.positions.models import DailyEntry, Pool


POOLS = 'pools'
ENTRIES = 'daily_entries'
SETTINGS = 'user_settings'
COLLECTIONS = (POOLS, ENTRIES, SETTINGS)

SET = 'set'
UPDATE = 'update'
DELETE = 'delete'


def new_id() -> str:
    return uuid.uuid4().hex


# ── Record serialization ────────────────────────────────────────────

def pool_to_dict(pool: Pool) -> dict:
    """Serialize a Pool to a JSON-safe dict."""
    return {
        'id': pool.id,
        'user_id': pool.user_id,
        'platform': pool.platform,
        'name': pool.name,
        'token_a': pool.token_a,
        'token_b': pool.token_b,
        'token_a_id': pool.token_a_id,
        'token_b_id': pool.token_b_id,
        'fee_tier': pool.fee_tier,
        'range_min': pool.range_min,
        'range_max': pool.range_max,
        'created_at': pool.created_at,
    }


def pool_from_dict(d: dict) -> Pool:
    return Pool(
        id=d['id'],
        user_id=d['user_id'],
        platform=d.get('platform', ''),
        name=d.get('name', ''),
        token_a=d.get('token_a', ''),
        token_b=d.get('token_b', ''),
        token_a_id=d.get('token_a_id', ''),
        token_b_id=d.get('token_b_id', ''),
        fee_tier=d.get('fee_tier', ''),
        range_min=d.get('range_min', 0.0),
        range_max=d.get('range_max', 0.0),
        created_at=d.get('created_at', ''),
    )


def entry_to_dict(entry: DailyEntry) -> dict:
    """Serialize a DailyEntry to a JSON-safe dict."""
    return {
        'id': entry.id,
        'pool_id': entry.pool_id,
        'user_id': entry.user_id,
        'date': entry.date,
        'position_value_usd': entry.position_value_usd,
        'fees_accumulated_token_a': entry.fees_accumulated_token_a,
        'fees_accumulated_token_b': entry.fees_accumulated_token_b,
        'fees_withdrawn_usd': entry.fees_withdrawn_usd,
        'note': entry.note,
        'token_a_price_usd': entry.token_a_price_usd,
        'token_b_price_usd': entry.token_b_price_usd,
        'usd_to_brl': entry.usd_to_brl,
        'updated_at': entry.updated_at,
    }


def entry_from_dict(d: dict) -> DailyEntry:
    """Deserialize an entry; fields missing from older files get defaults."""
    return DailyEntry(
        id=d['id'],
        pool_id=d['pool_id'],
        user_id=d['user_id'],
        date=d['date'],
        position_value_usd=d.get('position_value_usd', 0.0),
        fees_accumulated_token_a=d.get('fees_accumulated_token_a', 0.0),
        fees_accumulated_token_b=d.get('fees_accumulated_token_b', 0.0),
        fees_withdrawn_usd=d.get('fees_withdrawn_usd') or 0.0,
        note=d.get('note') or '',
        token_a_price_usd=d.get('token_a_price_usd', 0.0),
        token_b_price_usd=d.get('token_b_price_usd', 0.0),
        usd_to_brl=d.get('usd_to_brl', 0.0),
        updated_at=d.get('updated_at'),
    )


# ── Batched writes ──────────────────────────────────────────────────

@dataclass
class WriteOp:
    """One document write inside a batch."""
    kind: str                 # set / update / delete
    collection: str
    doc_id: str
    data: Optional[dict] = None


def set_doc(collection: str, doc_id: str, data: dict) -> WriteOp:
    return WriteOp(SET, collection, doc_id, data)


def update_doc(collection: str, doc_id: str, data: dict) -> WriteOp:
    return WriteOp(UPDATE, collection, doc_id, data)


def delete_doc(collection: str, doc_id: str) -> WriteOp:
    return WriteOp(DELETE, collection, doc_id)


def _empty_state() -> dict:
    return {POOLS: {}, ENTRIES: {}, SETTINGS: {}, 'platforms': []}


class DocumentStore:
    """JSON-file backed document store with owner-scoped queries."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._lock = threading.RLock()
        self._subscribers: Dict[str, List[Callable]] = {}
        self._data = self._load()

    # ------------------------------------------------------------------
    # Disk I/O
    # ------------------------------------------------------------------

    def _load(self) -> dict:
        if not self.path or not os.path.exists(self.path):
            return _empty_state()
        try:
            with open(self.path, 'r') as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError(f"Could not load data from {self.path}: {e}")

        state = _empty_state()
        for name in COLLECTIONS:
            state[name] = raw.get(name, {})
        state['platforms'] = raw.get('platforms', [])
        return state

    def _persist(self, state: dict):
        """Write state atomically (tmp file then rename)."""
        if not self.path:
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        payload = dict(state)
        payload['saved_at'] = datetime.now().isoformat()
        tmp_path = self.path + '.tmp'
        try:
            with open(tmp_path, 'w') as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise StoreError(f"Could not save data to {self.path}: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_pools(self, owner_id: str) -> List[Pool]:
        """Owner's pools, oldest first."""
        with self._lock:
            docs = [d for d in self._data[POOLS].values() if d.get('user_id') == owner_id]
        return sorted((pool_from_dict(d) for d in docs), key=lambda p: p.created_at)

    def get_pool(self, pool_id: str) -> Optional[Pool]:
        with self._lock:
            doc = self._data[POOLS].get(pool_id)
        return pool_from_dict(doc) if doc else None

    def list_entries(self, owner_id: str, pool_id: str = None) -> List[DailyEntry]:
        """Owner's entries ordered ascending by date, optionally for one pool."""
        with self._lock:
            docs = [
                d for d in self._data[ENTRIES].values()
                if d.get('user_id') == owner_id and (pool_id is None or d.get('pool_id') == pool_id)
            ]
        return sorted((entry_from_dict(d) for d in docs), key=lambda e: e.date)

    def get_entry(self, entry_id: str) -> Optional[DailyEntry]:
        with self._lock:
            doc = self._data[ENTRIES].get(entry_id)
        return entry_from_dict(doc) if doc else None

    def find_entry(self, owner_id: str, pool_id: str, date: str) -> Optional[DailyEntry]:
        """Point lookup on the (pool_id, date) upsert key."""
        with self._lock:
            for doc in self._data[ENTRIES].values():
                if (doc.get('user_id') == owner_id and doc.get('pool_id') == pool_id
                        and doc.get('date') == date):
                    return entry_from_dict(doc)
        return None

    def get_settings(self, owner_id: str) -> dict:
        with self._lock:
            return dict(self._data[SETTINGS].get(owner_id, {}))

    def list_platforms(self) -> List[str]:
        with self._lock:
            return sorted(self._data['platforms'])

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def batch_write(self, operations: List[WriteOp]):
        """Apply all operations or none of them."""
        if not operations:
            return

        with self._lock:
            staged = copy.deepcopy(self._data)
            owners = set()
            for op in operations:
                if op.collection not in COLLECTIONS:
                    raise StoreError(f"Unknown collection: {op.collection}")
                docs = staged[op.collection]
                existing = docs.get(op.doc_id)
                owners.update(self._owners_of(op, existing))

                if op.kind == SET:
                    docs[op.doc_id] = copy.deepcopy(op.data)
                elif op.kind == UPDATE:
                    if existing is None:
                        raise DocumentNotFoundError(f"{op.collection}/{op.doc_id} does not exist")
                    existing.update(copy.deepcopy(op.data))
                elif op.kind == DELETE:
                    docs.pop(op.doc_id, None)
                else:
                    raise StoreError(f"Unknown write kind: {op.kind}")

            self._persist(staged)
            self._data = staged

        for owner_id in owners:
            self._notify(owner_id)

    def set_settings(self, owner_id: str, **values):
        """Merge values into the owner's settings document."""
        with self._lock:
            exists = owner_id in self._data[SETTINGS]
        op = update_doc(SETTINGS, owner_id, values) if exists else set_doc(SETTINGS, owner_id, values)
        self.batch_write([op])

    def add_platform(self, name: str) -> bool:
        """Add a platform name once. Returns False if it was already known."""
        name = name.strip()
        with self._lock:
            if not name or name in self._data['platforms']:
                return False
            staged = copy.deepcopy(self._data)
            staged['platforms'].append(name)
            self._persist(staged)
            self._data = staged
        return True

    @staticmethod
    def _owners_of(op: WriteOp, existing: Optional[dict]) -> set:
        if op.collection == SETTINGS:
            return {op.doc_id}
        owners = set()
        for doc in (existing, op.data):
            if doc and doc.get('user_id'):
                owners.add(doc['user_id'])
        return owners

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, owner_id: str, callback: Callable) -> Callable[[], None]:
        """Call `callback(pools, entries)` now and after every change for the owner.

        Returns a function that cancels the subscription.
        """
        with self._lock:
            self._subscribers.setdefault(owner_id, []).append(callback)
        self._deliver(owner_id, callback)

        def unsubscribe():
            with self._lock:
                callbacks = self._subscribers.get(owner_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _notify(self, owner_id: str):
        with self._lock:
            callbacks = list(self._subscribers.get(owner_id, []))
        for callback in callbacks:
            self._deliver(owner_id, callback)

    def _deliver(self, owner_id: str, callback: Callable):
        try:
            callback(self.list_pools(owner_id), self.list_entries(owner_id))
        except Exception as e:
            print(f"⚠ Subscriber for {owner_id} failed: {e}")
