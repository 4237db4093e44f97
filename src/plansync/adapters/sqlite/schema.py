"""Database schema definitions for the local planner store.

Every table is keyed by a local uuid; remote ids are indexed because sync
looks entities up by them.
"""

from __future__ import annotations

# Schema version tracking
SCHEMA_VERSION = 1

# Users table - local cache of the signed-in identity
CREATE_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    remote_id TEXT NOT NULL UNIQUE,
    display_name TEXT,
    email TEXT NOT NULL,
    last_sync DATETIME,
    auto_sync BOOLEAN DEFAULT 1
)
"""

# Tags table
CREATE_TAGS_TABLE = """
CREATE TABLE IF NOT EXISTS tags (
    id TEXT PRIMARY KEY,
    remote_id TEXT,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    color_r REAL NOT NULL DEFAULT 0,
    color_g REAL NOT NULL DEFAULT 0,
    color_b REAL NOT NULL DEFAULT 0,
    color_a REAL NOT NULL DEFAULT 1,
    icon TEXT,
    is_synced BOOLEAN DEFAULT 0,
    version INTEGER DEFAULT 1,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    UNIQUE(owner_id, name)
)
"""

# Tasks table - private and shared tasks
CREATE_TASKS_TABLE = """
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    remote_id TEXT,
    title TEXT NOT NULL,
    description TEXT,
    due_date DATETIME NOT NULL,
    tag_id TEXT,
    tag_remote_id TEXT,
    auto_reminder BOOLEAN DEFAULT 0,
    is_important BOOLEAN DEFAULT 0,
    is_urgent BOOLEAN DEFAULT 0,
    is_auto_complete BOOLEAN DEFAULT 1,
    is_auto_fail BOOLEAN DEFAULT 0,
    is_done BOOLEAN DEFAULT 0,
    is_shared BOOLEAN DEFAULT 0,
    owner_id TEXT,
    from_user_id TEXT,
    to_user_id TEXT,
    from_user_name TEXT,
    to_user_name TEXT,
    is_synced BOOLEAN DEFAULT 0,
    received_date DATETIME,
    date_of_completion DATETIME,
    date_of_last_reminder DATETIME,
    version INTEGER DEFAULT 1,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE SET NULL,
    CHECK (NOT (is_auto_complete = 1 AND is_auto_fail = 1))
)
"""

# Friends table
CREATE_FRIENDS_TABLE = """
CREATE TABLE IF NOT EXISTS friends (
    id TEXT PRIMARY KEY,
    owner_uid TEXT NOT NULL,
    friend_name TEXT NOT NULL,
    friend_uid TEXT NOT NULL,
    friend_email TEXT NOT NULL,
    UNIQUE(owner_uid, friend_uid)
)
"""

# Friend requests table
CREATE_FRIEND_REQUESTS_TABLE = """
CREATE TABLE IF NOT EXISTS friend_requests (
    id TEXT PRIMARY KEY,
    remote_id TEXT UNIQUE,
    from_uid TEXT NOT NULL,
    to_uid TEXT NOT NULL,
    from_email TEXT NOT NULL,
    to_email TEXT NOT NULL,
    from_name TEXT,
    to_name TEXT,
    send_date DATETIME NOT NULL,
    resolved_date DATETIME,
    accepted BOOLEAN DEFAULT 0,
    resolved BOOLEAN DEFAULT 0
)
"""

CREATE_TASK_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_remote ON tasks(remote_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_id, is_synced)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks(is_done, due_date)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_from ON tasks(from_user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_to ON tasks(to_user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_tag ON tasks(tag_id)",
]

CREATE_TAG_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tags_remote ON tags(remote_id)",
    "CREATE INDEX IF NOT EXISTS idx_tags_owner ON tags(owner_id, is_synced)",
]

CREATE_FRIEND_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_friends_uid ON friends(friend_uid)",
    "CREATE INDEX IF NOT EXISTS idx_friend_requests_to ON friend_requests(to_uid, resolved)",
]

ALL_TABLES = [
    CREATE_USERS_TABLE,
    CREATE_TAGS_TABLE,
    CREATE_TASKS_TABLE,
    CREATE_FRIENDS_TABLE,
    CREATE_FRIEND_REQUESTS_TABLE,
]

ALL_INDEXES = CREATE_TASK_INDEXES + CREATE_TAG_INDEXES + CREATE_FRIEND_INDEXES

