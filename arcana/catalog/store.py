"""
Catalog store for platforms, games, collections and credentials.

All methods are synchronous and open a short-lived session per call, so the
store can be shared between threads (the scan engine calls it through
asyncio.to_thread).
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .db import create_db_engine, create_session_factory
from .models import ApiKey, Collection, Game, Meta, Platform, User

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"

GAME_FIELDS = (
    'appid',
    'release_date',
    'playtime_minutes',
    'rtime_last_played',
    'installed_path',
    'application_file',
)


class CatalogError(Exception):
    """Catalog persistence errors."""
    pass


class ConstraintViolation(CatalogError):
    """A write was rejected by a database constraint."""
    pass


class CatalogStore:
    """
    Normalized persistent storage for the game catalog.

    Platforms are resolved by exact name and created on first reference.
    Games are inserted as given; duplicate detection is left to the caller
    (see find_game / add_game_if_absent).

    Example:
        store = CatalogStore.from_url('sqlite:///arcana.db')
        steam = store.get_or_create_platform('Steam')
        store.insert_game('Portal', steam, tags=['puzzle'])
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Initialize catalog store

        Args:
            session_factory: sessionmaker bound to an initialized engine
        """
        self._session_factory = session_factory
        # Serializes check-then-insert sequences within this process
        self._write_lock = threading.Lock()

    @classmethod
    def from_url(cls, database_url: str) -> 'CatalogStore':
        """
        Create a store for a database URL, creating tables as needed.

        Args:
            database_url: SQLAlchemy database URL

        Returns:
            CatalogStore instance
        """
        engine = create_db_engine(database_url)
        store = cls(create_session_factory(engine))
        if store.get_meta('schema_version') is None:
            store.set_meta('schema_version', SCHEMA_VERSION)
        return store

    def _session(self) -> Session:
        return self._session_factory()

    # ------------------------------------------------------------------
    # Platforms
    # ------------------------------------------------------------------

    @staticmethod
    def _platform_name(platform: Any) -> str:
        name = platform.name if isinstance(platform, Platform) else platform
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Invalid platform name: {name!r}")
        return name.strip()

    def get_platform(self, name: str) -> Optional[Platform]:
        """Return the platform with this exact name, or None."""
        with self._session() as session:
            return session.query(Platform).filter(Platform.name == name).first()

    def get_or_create_platform(self, name: str) -> Platform:
        """
        Resolve a platform by name, creating it on first reference.

        Safe against concurrent callers: if another session creates the same
        name between our lookup and insert, the UNIQUE constraint rejects our
        row and the winner's row is returned instead.

        Args:
            name: Platform name (case-sensitive)

        Returns:
            The single Platform row for this name

        Raises:
            ValueError: If name is empty
        """
        name = self._platform_name(name)

        with self._session() as session:
            platform = session.query(Platform).filter(Platform.name == name).first()
            if platform is not None:
                return platform

            platform = Platform(name=name)
            session.add(platform)
            try:
                session.commit()
                logger.info(f"Created platform '{name}' (id={platform.id})")
                return platform
            except IntegrityError:
                # Concurrent creator won the race
                session.rollback()
                logger.debug(f"IntegrityError creating platform '{name}' - finding existing row")

            platform = session.query(Platform).filter(Platform.name == name).first()
            if platform is None:
                raise CatalogError(f"Platform '{name}' vanished after constraint violation")
            return platform

    def list_platforms(self) -> List[Platform]:
        """List platforms ordered by name."""
        with self._session() as session:
            return session.query(Platform).order_by(Platform.name).all()

    def seed_platforms(self, names: List[str]) -> int:
        """
        Create any missing platforms from names.

        Returns:
            Number of platforms created
        """
        existing = {p.name for p in self.list_platforms()}
        created = 0
        for name in names:
            if self._platform_name(name) not in existing:
                self.get_or_create_platform(name)
                created += 1
        return created

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def insert_game(
        self,
        title: str,
        platform: Any,
        genre: str = 'Unknown',
        tags: Optional[List[str]] = None,
        **fields: Any
    ) -> Game:
        """
        Insert a game row.

        Args:
            title: Game title (required, non-empty)
            platform: Platform row or platform name (resolved/created)
            genre: Genre label
            tags: Ordered tag list
            **fields: Optional columns (appid, release_date, playtime_minutes,
                      rtime_last_played, installed_path, application_file)

        Returns:
            The inserted Game

        Raises:
            ValueError: For an empty title or unknown field
            ConstraintViolation: If the database rejects the row
        """
        if not isinstance(title, str) or not title.strip():
            raise ValueError(f"Invalid game title: {title!r}")

        unknown = set(fields) - set(GAME_FIELDS)
        if unknown:
            raise ValueError(f"Unknown game fields: {', '.join(sorted(unknown))}")

        resolved = self.get_or_create_platform(self._platform_name(platform))

        with self._session() as session:
            game = Game(
                title=title,
                platform=resolved,
                genre=genre or 'Unknown',
                tags=list(tags or []),
                **fields
            )
            session.add(game)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise ConstraintViolation(f"Cannot insert game '{title}': {e.orig}") from e

            return game

    def find_game(self, title: str, platform: Any, appid: Optional[int] = None) -> Optional[Game]:
        """
        Find an existing game by its dedupe key.

        A game matches when it has the same title on the same platform, or,
        if appid is given, the same appid on the same platform.

        Args:
            title: Game title
            platform: Platform row or name
            appid: Optional platform application id

        Returns:
            Matching Game or None
        """
        with self._session() as session:
            resolved = session.query(Platform).filter(
                Platform.name == self._platform_name(platform)
            ).first()
            if resolved is None:
                return None

            query = session.query(Game).filter(Game.platform_id == resolved.id)
            game = query.filter(Game.title == title).first()
            if game is None and appid is not None:
                game = query.filter(Game.appid == appid).first()
            return game

    def add_game_if_absent(
        self,
        title: str,
        platform: Any,
        genre: str = 'Unknown',
        tags: Optional[List[str]] = None,
        **fields: Any
    ) -> Tuple[Game, bool]:
        """
        Insert a game unless one with the same dedupe key exists.

        Returns:
            Tuple of (game, created)
        """
        with self._write_lock:
            existing = self.find_game(title, platform, appid=fields.get('appid'))
            if existing is not None:
                return existing, False
            return self.insert_game(title, platform, genre=genre, tags=tags, **fields), True

    def list_games(self, platform: Optional[str] = None) -> List[Game]:
        """List games ordered by title, optionally for one platform."""
        with self._session() as session:
            query = session.query(Game)
            if platform is not None:
                query = query.join(Game.platform).filter(Platform.name == platform)
            return query.order_by(Game.title).all()

    def count_games(self, platform: Optional[str] = None) -> int:
        """Count games, optionally for one platform."""
        with self._session() as session:
            query = session.query(Game)
            if platform is not None:
                query = query.join(Game.platform).filter(Platform.name == platform)
            return query.count()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def create_collection(self, name: str) -> Collection:
        """
        Create a named collection.

        Raises:
            ConstraintViolation: If the name is taken
        """
        with self._session() as session:
            collection = Collection(name=name)
            session.add(collection)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise ConstraintViolation(f"Collection '{name}' already exists") from e
            return collection

    def add_game_to_collection(self, collection_id: int, game_id: int) -> None:
        """Link a game to a collection (no-op if already linked)."""
        with self._session() as session:
            collection = session.get(Collection, collection_id)
            game = session.get(Game, game_id)
            if collection is None or game is None:
                raise CatalogError(f"Unknown collection {collection_id} or game {game_id}")
            if game not in collection.games:
                collection.games.append(game)
                session.commit()

    def list_collections(self) -> List[Collection]:
        with self._session() as session:
            return session.query(Collection).order_by(Collection.name).all()

    def get_collection_games(self, collection_id: int) -> List[Game]:
        with self._session() as session:
            collection = session.get(Collection, collection_id)
            if collection is None:
                return []
            return list(collection.games)

    # ------------------------------------------------------------------
    # Users and credentials
    # ------------------------------------------------------------------

    def ensure_user(self, name: str) -> User:
        """Return the user with this name, creating it if needed."""
        with self._session() as session:
            user = session.query(User).filter(User.name == name).first()
            if user is not None:
                return user
            user = User(name=name)
            session.add(user)
            try:
                session.commit()
                return user
            except IntegrityError:
                session.rollback()
            return session.query(User).filter(User.name == name).one()

    def set_active_user(self, user_id: int) -> None:
        self.set_meta('active_user_id', str(user_id))

    def get_active_user(self) -> Optional[User]:
        user_id = self.get_meta('active_user_id')
        if not user_id:
            return None
        with self._session() as session:
            return session.get(User, int(user_id))

    def set_api_key(
        self,
        user_id: int,
        platform: str,
        key: str,
        client_id: Optional[str] = None
    ) -> ApiKey:
        """
        Store (or replace) a platform credential for a user.

        Args:
            user_id: Owning user id
            platform: Platform name (created if missing)
            key: Secret key
            client_id: Optional platform account id

        Returns:
            The stored ApiKey
        """
        resolved = self.get_or_create_platform(platform)
        with self._session() as session:
            query = session.query(ApiKey).filter(
                ApiKey.user_id == user_id,
                ApiKey.platform_id == resolved.id,
            )
            if client_id is None:
                query = query.filter(ApiKey.client_id.is_(None))
            else:
                query = query.filter(ApiKey.client_id == client_id)
            api_key = query.first()
            if api_key is None:
                api_key = ApiKey(user_id=user_id, platform=resolved, client_id=client_id, key=key)
                session.add(api_key)
            else:
                api_key.key = key
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise ConstraintViolation(f"Cannot store API key for '{platform}': {e.orig}") from e
            return api_key

    def get_api_key(self, platform: str) -> Optional[ApiKey]:
        """
        Find a stored credential for a platform.

        Prefers the active user's key and falls back to any user's.
        """
        resolved = self.get_platform(platform)
        if resolved is None:
            return None

        active = self.get_active_user()
        with self._session() as session:
            query = session.query(ApiKey).filter(ApiKey.platform_id == resolved.id)
            if active is not None:
                api_key = query.filter(ApiKey.user_id == active.id).order_by(ApiKey.id).first()
                if api_key is not None:
                    return api_key
            return query.order_by(ApiKey.id).first()

    # ------------------------------------------------------------------
    # Meta
    # ------------------------------------------------------------------

    def get_meta(self, key: str) -> Optional[str]:
        with self._session() as session:
            row = session.get(Meta, key)
            return row.value if row is not None else None

    def set_meta(self, key: str, value: str) -> None:
        with self._session() as session:
            session.merge(Meta(key=key, value=value))
            session.commit()

    def get_stats(self) -> Dict[str, int]:
        """
        Get catalog statistics

        Returns:
            dict with platform, game and collection counts
        """
        with self._session() as session:
            return {
                'platforms': session.query(Platform).count(),
                'games': session.query(Game).count(),
                'collections': session.query(Collection).count(),
            }
