"""
Repository pattern for data access.

Handles database operations for the model catalog, conversations, turns,
analytics events and user profiles.
"""

import json
import sqlite3
from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from ai_chat_router.core.errors import CatalogUnavailable, PersistenceError
from .db import DEFAULT_DB_PATH, get_connection
from .models import (
    AnalyticsEvent,
    Conversation,
    Model,
    ModelType,
    Role,
    Turn,
    UserProfile,
)

# Smallest step that keeps created_at strictly increasing within a conversation
TIMESTAMP_STEP = timedelta(microseconds=1)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS ai_models (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        provider TEXT NOT NULL,
        model_type TEXT NOT NULL CHECK (model_type IN ('chat', 'image', 'audio')),
        capabilities TEXT NOT NULL DEFAULT '[]',
        max_tokens INTEGER,
        cost_per_token REAL,
        is_active INTEGER NOT NULL DEFAULT 1,
        configuration TEXT NOT NULL DEFAULT '{}'
    );

    CREATE TABLE IF NOT EXISTS conversations (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS messages (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        conversation_id TEXT NOT NULL REFERENCES conversations(id),
        user_id TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
        content TEXT NOT NULL,
        model_used TEXT,
        tokens_used INTEGER,
        processing_time_ms INTEGER,
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_messages_conversation
        ON messages (conversation_id, created_at);

    CREATE TABLE IF NOT EXISTS user_analytics (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        user_id TEXT NOT NULL,
        event_type TEXT NOT NULL,
        event_data TEXT NOT NULL DEFAULT '{}',
        session_id TEXT,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS profiles (
        user_id TEXT PRIMARY KEY,
        language_preference TEXT NOT NULL DEFAULT 'en',
        preferences TEXT NOT NULL DEFAULT '{}'
    );
"""

_MODEL_COLUMNS = (
    "name, provider, model_type, capabilities, max_tokens, "
    "cost_per_token, is_active, configuration"
)
_TURN_COLUMNS = (
    "id, conversation_id, user_id, role, content, model_used, "
    "tokens_used, processing_time_ms, created_at"
)


def _ts(value: datetime) -> str:
    # fixed width so lexical order in SQL matches chronological order
    return value.isoformat(timespec="microseconds")


class ChatRepository:
    """Repository over the sqlite store.

    Each call opens its own connection, so one instance can be shared by
    concurrent requests.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize_schema(self) -> None:
        """Create all tables if they don't exist."""
        conn = get_connection(self.db_path)
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    # -- model catalog -------------------------------------------------

    def upsert_model(self, model: Model) -> None:
        """Insert or replace a catalog entry, keeping its catalog position."""
        conn = get_connection(self.db_path)
        try:
            conn.execute(f"""
                INSERT INTO ai_models ({_MODEL_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    provider = excluded.provider,
                    model_type = excluded.model_type,
                    capabilities = excluded.capabilities,
                    max_tokens = excluded.max_tokens,
                    cost_per_token = excluded.cost_per_token,
                    is_active = excluded.is_active,
                    configuration = excluded.configuration
            """, (
                model.name,
                model.provider,
                model.model_type.value,
                json.dumps(sorted(model.capabilities)),
                model.max_tokens,
                model.cost_per_token,
                int(model.is_active),
                json.dumps(model.configuration)
            ))
            conn.commit()
        finally:
            conn.close()

    def list_active_models(self) -> List[Model]:
        """Return active models in catalog order.

        Raises:
            CatalogUnavailable: If the store cannot be read
        """
        try:
            conn = get_connection(self.db_path)
            try:
                cursor = conn.execute(
                    f"SELECT {_MODEL_COLUMNS} FROM ai_models WHERE is_active = 1 ORDER BY id"
                )
                return [_row_to_model(row) for row in cursor.fetchall()]
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise CatalogUnavailable(details=str(e)) from e

    # -- conversations and turns ---------------------------------------

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        conn = self._connect()
        try:
            row = conn.execute("""
                SELECT id, user_id, title, created_at, updated_at
                FROM conversations WHERE id = ?
            """, (conversation_id,)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError("Conversation store unavailable", details=str(e)) from e
        finally:
            conn.close()

        if row is None:
            return None
        return Conversation(
            id=row[0],
            user_id=row[1],
            title=row[2],
            created_at=datetime.fromisoformat(row[3]),
            updated_at=datetime.fromisoformat(row[4])
        )

    def list_turns(self, conversation_id: str, limit: Optional[int] = None) -> List[Turn]:
        """Return a conversation's turns, oldest first.

        Args:
            conversation_id: Conversation to read
            limit: When set, only the most recent ``limit`` turns are returned

        Returns:
            Turns ordered by created_at (ties broken by insertion order)
        """
        query = f"SELECT {_TURN_COLUMNS} FROM messages WHERE conversation_id = ?"
        params: list = [conversation_id]
        if limit is not None:
            query += " ORDER BY created_at DESC, seq DESC LIMIT ?"
            params.append(limit)
        else:
            query += " ORDER BY created_at ASC, seq ASC"

        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError("Conversation store unavailable", details=str(e)) from e
        finally:
            conn.close()

        turns = [_row_to_turn(row) for row in rows]
        if limit is not None:
            turns.reverse()
        return turns

    def persist_exchange(
        self,
        conversation: Conversation,
        user_turn: Turn,
        assistant_turn: Turn,
        create_conversation: bool = False
    ) -> Tuple[Turn, Turn]:
        """Write a user turn and its reply as one all-or-nothing batch.

        Inside a single transaction this optionally creates the conversation
        row, appends both turns and bumps the conversation's updated_at.
        Turn timestamps are pushed forward where needed so created_at stays
        strictly increasing within the conversation.

        Args:
            conversation: Conversation the turns belong to
            user_turn: The user's message
            assistant_turn: The generated reply
            create_conversation: Insert the conversation row in the same batch

        Returns:
            The (user, assistant) turns exactly as stored

        Raises:
            PersistenceError: If the batch could not be committed; nothing
                from the batch is stored in that case
        """
        conn = self._connect()
        try:
            # take the write lock before reading the latest timestamp
            conn.execute("BEGIN IMMEDIATE")

            if create_conversation:
                conn.execute("""
                    INSERT INTO conversations (id, user_id, title, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                """, (
                    conversation.id,
                    conversation.user_id,
                    conversation.title,
                    _ts(conversation.created_at),
                    _ts(conversation.updated_at)
                ))

            row = conn.execute(
                "SELECT MAX(created_at) FROM messages WHERE conversation_id = ?",
                (conversation.id,)
            ).fetchone()
            if row[0] is not None:
                floor = datetime.fromisoformat(row[0]) + TIMESTAMP_STEP
                if user_turn.created_at < floor:
                    user_turn = replace(user_turn, created_at=floor)
            if assistant_turn.created_at <= user_turn.created_at:
                assistant_turn = replace(
                    assistant_turn, created_at=user_turn.created_at + TIMESTAMP_STEP
                )

            for turn in (user_turn, assistant_turn):
                conn.execute(f"""
                    INSERT INTO messages ({_TURN_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, _turn_params(turn))

            cursor = conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (_ts(assistant_turn.created_at), conversation.id)
            )
            if cursor.rowcount != 1:
                raise sqlite3.IntegrityError(f"conversation {conversation.id} does not exist")

            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(details=str(e)) from e
        finally:
            conn.close()

        return user_turn, assistant_turn

    # -- analytics -----------------------------------------------------

    def insert_analytics_event(self, event: AnalyticsEvent) -> None:
        """Append one analytics event. Events are never deduplicated."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO user_analytics
                (id, user_id, event_type, event_data, session_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                event.id,
                event.user_id,
                event.event_type,
                json.dumps(event.event_data, default=str),
                event.session_id,
                _ts(event.created_at)
            ))
            conn.commit()
        finally:
            conn.close()

    def fetch_analytics_events(
        self,
        user_id: str,
        since: Optional[datetime] = None
    ) -> List[AnalyticsEvent]:
        """Fetch a user's analytics events, oldest first."""
        query = """
            SELECT id, user_id, event_type, event_data, session_id, created_at
            FROM user_analytics WHERE user_id = ?
        """
        params: list = [user_id]
        if since is not None:
            query += " AND created_at >= ?"
            params.append(_ts(since))
        query += " ORDER BY created_at ASC, seq ASC"

        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        return [
            AnalyticsEvent(
                id=row[0],
                user_id=row[1],
                event_type=row[2],
                event_data=json.loads(row[3]),
                session_id=row[4],
                created_at=datetime.fromisoformat(row[5])
            )
            for row in rows
        ]

    def count_conversations(self, user_id: str, since: Optional[datetime] = None) -> int:
        query = "SELECT COUNT(*) FROM conversations WHERE user_id = ?"
        params: list = [user_id]
        if since is not None:
            query += " AND created_at >= ?"
            params.append(_ts(since))

        conn = get_connection(self.db_path)
        try:
            return conn.execute(query, params).fetchone()[0]
        finally:
            conn.close()

    def fetch_assistant_turns(self, user_id: str, since: Optional[datetime] = None) -> List[Turn]:
        """Assistant turns across all of a user's conversations, oldest first."""
        query = f"SELECT {_TURN_COLUMNS} FROM messages WHERE user_id = ? AND role = 'assistant'"
        params: list = [user_id]
        if since is not None:
            query += " AND created_at >= ?"
            params.append(_ts(since))
        query += " ORDER BY created_at ASC, seq ASC"

        conn = get_connection(self.db_path)
        try:
            return [_row_to_turn(row) for row in conn.execute(query, params).fetchall()]
        finally:
            conn.close()

    # -- profiles ------------------------------------------------------

    def get_profile(self, user_id: str) -> UserProfile:
        """Return the user's profile, or defaults when none is stored."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT language_preference, preferences FROM profiles WHERE user_id = ?",
                (user_id,)
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return UserProfile(user_id=user_id)
        return UserProfile(
            user_id=user_id,
            language_preference=row[0] or "en",
            preferences=json.loads(row[1] or "{}")
        )

    def upsert_profile(self, profile: UserProfile) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO profiles (user_id, language_preference, preferences)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    language_preference = excluded.language_preference,
                    preferences = excluded.preferences
            """, (profile.user_id, profile.language_preference, json.dumps(profile.preferences)))
            conn.commit()
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError("Conversation store unavailable", details=str(e)) from e


def _row_to_model(row: tuple) -> Model:
    return Model(
        name=row[0],
        provider=row[1],
        model_type=ModelType(row[2]),
        capabilities=frozenset(json.loads(row[3] or "[]")),
        max_tokens=row[4],
        cost_per_token=row[5],
        is_active=bool(row[6]),
        configuration=json.loads(row[7] or "{}")
    )


def _row_to_turn(row: tuple) -> Turn:
    return Turn(
        id=row[0],
        conversation_id=row[1],
        user_id=row[2],
        role=Role(row[3]),
        content=row[4],
        model_used=row[5],
        tokens_used=row[6],
        processing_time_ms=row[7],
        created_at=datetime.fromisoformat(row[8])
    )


def _turn_params(turn: Turn) -> tuple:
    return (
        turn.id,
        turn.conversation_id,
        turn.user_id,
        turn.role.value,
        turn.content,
        turn.model_used,
        turn.tokens_used,
        turn.processing_time_ms,
        _ts(turn.created_at)
    )
