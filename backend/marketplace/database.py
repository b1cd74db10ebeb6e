import sqlite3
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from marketplace.config import settings


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


SCHEMA_SQL = """\
-- ============================================================
-- USERS
-- ============================================================
CREATE TABLE IF NOT EXISTS users (
    id                     TEXT PRIMARY KEY,
    name                   TEXT NOT NULL,
    email                  TEXT NOT NULL UNIQUE COLLATE NOCASE,
    password_hash          TEXT NOT NULL,
    role                   TEXT NOT NULL CHECK(role IN ('freelancer','job_provider')),
    bio                    TEXT NOT NULL DEFAULT '',
    skills                 TEXT NOT NULL DEFAULT '[]',
    hourly_rate            REAL,
    profile_pic            TEXT NOT NULL DEFAULT '',
    reset_token_hash       TEXT,
    reset_token_expires_at REAL,
    created_at             TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at             TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

-- Role is fixed at signup.
CREATE TRIGGER IF NOT EXISTS users_role_immutable BEFORE UPDATE OF role ON users
WHEN new.role <> old.role BEGIN
    SELECT RAISE(ABORT, 'role is immutable');
END;

-- ============================================================
-- AUTH THROTTLE
-- ============================================================
CREATE TABLE IF NOT EXISTS auth_throttle (
    key             TEXT PRIMARY KEY,
    failed_attempts INTEGER NOT NULL,
    last_failed_at  REAL NOT NULL
);

-- ============================================================
-- JOBS
-- ============================================================
CREATE TABLE IF NOT EXISTS jobs (
    id               TEXT PRIMARY KEY,
    title            TEXT NOT NULL,
    description      TEXT NOT NULL,
    category         TEXT NOT NULL
                     CHECK(category IN ('Web Development','Mobile Development','Design',
                                        'Writing','Data Entry','Digital Marketing',
                                        'Video Editing','Translation','Other')),
    budget           REAL NOT NULL CHECK(budget >= 0),
    budget_type      TEXT NOT NULL DEFAULT 'fixed' CHECK(budget_type IN ('fixed','hourly')),
    skills           TEXT NOT NULL DEFAULT '[]',
    duration         TEXT CHECK(duration IN ('less_than_1_week','1_to_4_weeks','1_to_3_months',
                                             '3_to_6_months','more_than_6_months')),
    experience_level TEXT NOT NULL DEFAULT 'intermediate'
                     CHECK(experience_level IN ('entry','intermediate','expert')),
    status           TEXT NOT NULL DEFAULT 'open'
                     CHECK(status IN ('open','in_progress','completed','cancelled')),
    created_by       TEXT NOT NULL REFERENCES users(id),
    assigned_to      TEXT REFERENCES users(id),
    bids_count       INTEGER NOT NULL DEFAULT 0 CHECK(bids_count >= 0),
    created_at       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    CHECK ((assigned_to IS NOT NULL) = (status IN ('in_progress','completed')))
);

CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_category ON jobs(category);
CREATE INDEX IF NOT EXISTS idx_jobs_created_by ON jobs(created_by);
CREATE INDEX IF NOT EXISTS idx_jobs_created_at ON jobs(created_at);

-- ============================================================
-- BIDS
-- ============================================================
CREATE TABLE IF NOT EXISTS bids (
    id            TEXT PRIMARY KEY,
    freelancer_id TEXT NOT NULL REFERENCES users(id),
    job_id        TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    bid_amount    REAL NOT NULL CHECK(bid_amount >= 0),
    message       TEXT NOT NULL,
    delivery_time INTEGER NOT NULL CHECK(delivery_time >= 1),
    status        TEXT NOT NULL DEFAULT 'pending'
                  CHECK(status IN ('pending','accepted','rejected')),
    created_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    UNIQUE (freelancer_id, job_id)
);

CREATE INDEX IF NOT EXISTS idx_bids_job ON bids(job_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_bids_one_accepted ON bids(job_id) WHERE status = 'accepted';

-- ============================================================
-- PAYMENTS
-- ============================================================
CREATE TABLE IF NOT EXISTS payments (
    id             TEXT PRIMARY KEY,
    job_id         TEXT NOT NULL REFERENCES jobs(id),
    payer_id       TEXT NOT NULL REFERENCES users(id),
    payee_id       TEXT NOT NULL REFERENCES users(id),
    amount         REAL NOT NULL CHECK(amount >= 0),
    currency       TEXT NOT NULL,
    order_id       TEXT NOT NULL UNIQUE,
    transaction_id TEXT,
    signature      TEXT,
    status         TEXT NOT NULL DEFAULT 'created'
                   CHECK(status IN ('created','paid','failed','refunded')),
    description    TEXT NOT NULL DEFAULT '',
    created_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_payments_job ON payments(job_id);
CREATE INDEX IF NOT EXISTS idx_payments_payer ON payments(payer_id);
CREATE INDEX IF NOT EXISTS idx_payments_payee ON payments(payee_id);
"""


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA_SQL)
    conn.close()
