"""
HealthPartner Backoffice — Snapshot Store
One JSON snapshot of every collection in a single durable slot.
File slot by default, PostgreSQL slot when DATABASE_URL is set.

Every public operation goes through SnapshotStore.transaction():
lock, load the whole snapshot, mutate, save the whole snapshot.
"""
import os, json, copy, fcntl, random, threading
from contextlib import contextmanager
from datetime import datetime, timezone, date
from pathlib import Path

from backoffice.config import (
    COLLECTIONS, DATABASE_URL, DB_PATH, DB_LOCK_PATH, PERSIST_DATA, SEED_DEMO, STATE_KEY,
)

# ============================================================
# EMPTY DB SCHEMA
# ============================================================
EMPTY_DB = {name: [] for name in COLLECTIONS}


def empty_db() -> dict:
    """Return a fresh empty snapshot."""
    return copy.deepcopy(EMPTY_DB)


# ============================================================
# SLOTS (single-key durable read/write primitives)
# ============================================================
class MemorySlot:
    """In-process slot. Nothing survives the process."""

    def __init__(self, payload: str = None):
        self.payload = payload

    def read(self):
        return self.payload

    def write(self, payload: str):
        self.payload = payload


class FileSlot:
    """JSON file slot with an flock-guarded atomic replace."""

    def __init__(self, path, lock_path=None):
        self.path = Path(path)
        self.lock_path = Path(lock_path) if lock_path else self.path.with_suffix(".lock")

    def read(self):
        if not self.path.exists():
            return None
        # Shared lock so a read never sees a half-written file
        with open(self.lock_path, "a+") as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_SH)
            try:
                return self.path.read_text(encoding="utf-8")
            finally:
                fcntl.flock(lock_file, fcntl.LOCK_UN)

    def write(self, payload: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a+") as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_EX)
            try:
                tmp = self.path.with_suffix(".tmp")
                tmp.write_text(payload, encoding="utf-8")
                os.replace(tmp, self.path)
            finally:
                fcntl.flock(lock_file, fcntl.LOCK_UN)


class PostgresSlot:
    """One row of the app_state table, keyed by STATE_KEY."""

    def __init__(self, url: str, key: str = STATE_KEY):
        import psycopg2
        from psycopg2.pool import SimpleConnectionPool
        self.key = key
        self.pool = SimpleConnectionPool(1, 5, url)
        self._init_table()
        print("[DB] Connected to PostgreSQL")

    def _init_table(self):
        conn = self.pool.getconn()
        try:
            cur = conn.cursor()
            cur.execute("""
                CREATE TABLE IF NOT EXISTS app_state (
                    id TEXT PRIMARY KEY,
                    data JSONB NOT NULL DEFAULT '{}',
                    updated_at TIMESTAMP DEFAULT NOW()
                )
            """)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

    def read(self):
        conn = self.pool.getconn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT data FROM app_state WHERE id=%s", (self.key,))
            row = cur.fetchone()
            if not row:
                return None
            # JSONB comes back already decoded
            return row[0] if isinstance(row[0], str) else json.dumps(row[0])
        finally:
            self.pool.putconn(conn)

    def write(self, payload: str):
        conn = self.pool.getconn()
        try:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO app_state (id, data, updated_at) VALUES (%s, %s, NOW()) "
                "ON CONFLICT (id) DO UPDATE SET data=EXCLUDED.data, updated_at=NOW()",
                (self.key, payload))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)


def make_slot():
    """Pick the durable slot from configuration."""
    if DATABASE_URL:
        print("[DB] Using PostgreSQL backend")
        return PostgresSlot(DATABASE_URL)
    if not PERSIST_DATA:
        print("[DB] Persistence disabled, using in-memory slot")
        return MemorySlot()
    print(f"[DB] Using file backend ({DB_PATH.name})")
    return FileSlot(DB_PATH, DB_LOCK_PATH)


# ============================================================
# SNAPSHOT STORE
# ============================================================
class SnapshotStore:
    """Explicit handle to the durable snapshot. Passed to every repository."""

    def __init__(self, slot, seed_demo: bool = False, rng: random.Random = None):
        self.slot = slot
        self.seed_demo = seed_demo
        self.rng = rng or random.Random()
        self._lock = threading.RLock()

    def _fresh(self) -> dict:
        if self.seed_demo:
            from backoffice.seed import seed_db
            return seed_db(self.rng)
        return empty_db()

    def load(self) -> dict:
        """Current snapshot. Missing or unreadable data is replaced by a fresh one."""
        with self._lock:
            raw = self.slot.read()
            if not raw:
                db = self._fresh()
                self.save(db)
                return db
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = None
            if not isinstance(parsed, dict):
                print("[DB] Stored snapshot could not be parsed, starting fresh")
                db = self._fresh()
                self.save(db)
                return db

            from backoffice.migrate import migrate
            db, changed = migrate(parsed, self.rng, seed_demo=self.seed_demo)
            if changed:
                self.save(db)
            return db

    def save(self, db: dict):
        with self._lock:
            self.slot.write(json.dumps(db, default=str))

    @contextmanager
    def transaction(self):
        """Load-mutate-save under the store lock. Nothing is saved if the body raises."""
        with self._lock:
            db = self.load()
            yield db
            self.save(db)

    def read(self) -> dict:
        """Point-in-time copy for read paths."""
        return self.load()

    def reset(self) -> dict:
        with self._lock:
            db = self._fresh()
            self.save(db)
            return db


def build_store(seed_demo: bool = None) -> SnapshotStore:
    """Store wired from environment configuration."""
    return SnapshotStore(make_slot(), seed_demo=SEED_DEMO if seed_demo is None else seed_demo)


# ============================================================
# UTILITIES
# ============================================================
def _n(val, default=0):
    """Safe numeric conversion: None/empty → default, strings → float."""
    if val is None or val == "":
        return float(default)
    try:
        return float(val)
    except (ValueError, TypeError):
        return float(default)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_iso(now: datetime = None) -> str:
    return (now or utcnow()).isoformat()


def today_iso(now: datetime = None) -> str:
    return (now or utcnow()).date().isoformat()


def parse_ts(value):
    """Parse an ISO date or timestamp into an aware UTC datetime. None if unparseable."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def find_by_id(items: list, item_id: str):
    return next((x for x in items if x.get("id") == item_id), None)


def ensure_choice(value, choices, label: str):
    """Reject values outside an enum. Raised before any snapshot is touched."""
    if value not in choices:
        raise ValueError(f"Invalid {label}: {value!r}. Must be one of: {', '.join(choices)}")
    return value
