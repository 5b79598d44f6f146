from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    ColumnElement,
    CursorResult,
    Float,
    Integer,
    String,
    and_,
    delete,
    func,
    literal_column,
    or_,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from speedprice.domain.models import (
    BulkUpsertResult,
    FavoriteEntry,
    HistoryEntry,
    Prices,
    Product,
    QueryShape,
    SearchPage,
    SortMode,
)
from speedprice.domain.ports import ProductNotFoundError
from speedprice.domain.text import is_numeric_query, normalize, tokenize
from speedprice.repositories.base import (
    AbstractFavoriteRepository,
    AbstractHistoryRepository,
    AbstractProductRepository,
    resolve_upsert,
)
from speedprice.services.ranking import RankingEngine, paginate

_SOURCE = "sqlite"


class Base(DeclarativeBase):
    pass


class ProductORM(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    barcode: Mapped[str | None] = mapped_column(String, unique=True, index=True, nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    search_slug: Mapped[str] = mapped_column(String, index=True, nullable=False)
    retail_price: Mapped[float] = mapped_column(Float, nullable=False)
    wholesale_price: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String, nullable=False)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    image: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)


class HistoryORM(Base):
    __tablename__ = "history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    barcode: Mapped[str | None] = mapped_column(String, nullable=True)
    product_name: Mapped[str] = mapped_column(String, nullable=False)
    retail_price: Mapped[float] = mapped_column(Float, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)


class FavoriteORM(Base):
    __tablename__ = "favorites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    added_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


# Einfügereihenfolge als letzter, deterministischer Tie-Break
_PRODUCT_ROWID = literal_column("products.rowid")

_ORDER_BY = {
    SortMode.NEWEST: (ProductORM.updated_at.desc(),),
    SortMode.PRICE_ASC: (ProductORM.retail_price.asc(),),
    SortMode.PRICE_DESC: (ProductORM.retail_price.desc(),),
    SortMode.NAME_ASC: (ProductORM.search_slug.asc(),),
}


def _to_domain(row: ProductORM) -> Product:
    return Product(
        id=row.id,
        barcode=row.barcode,
        name=row.name,
        prices=Prices(retail=row.retail_price, wholesale=row.wholesale_price),
        unit=row.unit,
        location=row.location,
        image=row.image,
        updated_at=row.updated_at,
    )


def _apply(row: ProductORM, product: Product) -> None:
    row.barcode = product.barcode
    row.name = product.name
    row.search_slug = product.search_slug
    row.retail_price = product.prices.retail
    row.wholesale_price = product.prices.wholesale or product.prices.retail
    row.unit = product.unit
    row.location = product.location
    row.image = product.image
    row.updated_at = product.updated_at


def _new_row(product: Product) -> ProductORM:
    row = ProductORM(id=product.id)
    _apply(row, product)
    return row


class SQLiteDatabase:
    """Gemeinsame Engine für Produkte, Verlauf und Favoriten."""

    def __init__(self, database_url: str) -> None:
        self.engine = create_async_engine(database_url)
        self.async_session_maker = async_sessionmaker(self.engine, expire_on_commit=False)

    async def initialize(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


class SQLiteProductRepository(AbstractProductRepository):
    """
    Product store backed by SQLAlchemy (async, aiosqlite).

    Serves as server of record behind the HTTP API and as the offline mirror on
    clients. Search narrows candidates in SQL and ranks them with the shared
    RankingEngine so both deployments order results identically.
    """

    def __init__(self, database: SQLiteDatabase, ranking: RankingEngine | None = None) -> None:
        self._db = database
        self._ranking = ranking or RankingEngine()

    async def search(
        self, query: str, sort: SortMode = SortMode.NEWEST, page: int = 1, limit: int = 30
    ) -> SearchPage:
        page = max(page, 1)
        trimmed = query.strip()
        normalized = normalize(trimmed)

        async with self._db.async_session_maker() as session:
            if not normalized:
                return await self._ordered_page(session, None, sort, page, limit, QueryShape.EMPTY)

            if is_numeric_query(trimmed):
                exact = await self._find_by_barcode(session, trimmed)
                if exact is not None:
                    return SearchPage(
                        products=[_to_domain(exact)] if page == 1 else [],
                        total=1,
                        page=page,
                        has_more=False,
                        shape=QueryShape.BARCODE_EXACT,
                    )
                prefix = ProductORM.barcode.startswith(trimmed, autoescape=True)
                result = await self._ordered_page(
                    session, prefix, sort, page, limit, QueryShape.BARCODE_PREFIX
                )
                if result.total > 0:
                    return result

            tokens = tokenize(normalized)
            prefilter = or_(
                and_(*[ProductORM.search_slug.contains(t, autoescape=True) for t in tokens]),
                ProductORM.barcode.contains(trimmed, autoescape=True),
            )
            rows = await session.execute(
                select(ProductORM).where(prefilter).order_by(_PRODUCT_ROWID)
            )
            candidates = [_to_domain(row) for row in rows.scalars()]

        ranked = self._ranking.score_all(trimmed, candidates, sort)
        return paginate(ranked, page, limit, QueryShape.GENERAL)

    async def _ordered_page(
        self,
        session: AsyncSession,
        condition: ColumnElement[bool] | None,
        sort: SortMode,
        page: int,
        limit: int,
        shape: QueryShape,
    ) -> SearchPage:
        count_stmt = select(func.count()).select_from(ProductORM)
        stmt = select(ProductORM)
        if condition is not None:
            count_stmt = count_stmt.where(condition)
            stmt = stmt.where(condition)

        total = (await session.execute(count_stmt)).scalar_one()
        offset = (page - 1) * limit
        result = await session.execute(
            stmt.order_by(*_ORDER_BY[sort], _PRODUCT_ROWID).offset(offset).limit(limit)
        )
        products = [_to_domain(row) for row in result.scalars()]
        return SearchPage(
            products=products,
            total=total,
            page=page,
            has_more=offset + len(products) < total,
            shape=shape,
        )

    @staticmethod
    async def _find_by_barcode(session: AsyncSession, barcode: str) -> ProductORM | None:
        result = await session.execute(select(ProductORM).where(ProductORM.barcode == barcode))
        return result.scalar_one_or_none()

    async def create(self, product: Product) -> Product:
        async with self._db.async_session_maker() as session, session.begin():
            existing = None
            if product.barcode:
                existing = await self._find_by_barcode(session, product.barcode)
            if existing is not None:
                stored = product.model_copy(
                    update={
                        "id": existing.id,
                        "updated_at": max(product.updated_at, existing.updated_at + 1),
                    }
                )
                _apply(existing, stored)
                return stored
            session.add(_new_row(product))
        return product

    async def update(self, product: Product) -> Product:
        async with self._db.async_session_maker() as session, session.begin():
            row = await session.get(ProductORM, product.id)
            if row is None:
                raise ProductNotFoundError(product.id, _SOURCE)
            _apply(row, product)
        return product

    async def delete(self, product_id: str) -> None:
        async with self._db.async_session_maker() as session, session.begin():
            result = await session.execute(delete(ProductORM).where(ProductORM.id == product_id))
            if not isinstance(result, CursorResult) or result.rowcount == 0:
                raise ProductNotFoundError(product_id, _SOURCE)

    async def get_by_id(self, product_id: str) -> Product | None:
        async with self._db.async_session_maker() as session:
            row = await session.get(ProductORM, product_id)
            return _to_domain(row) if row else None

    async def get_by_barcode(self, barcode: str) -> Product | None:
        async with self._db.async_session_maker() as session:
            row = await self._find_by_barcode(session, barcode)
            return _to_domain(row) if row else None

    async def bulk_upsert_by_barcode(self, products: list[Product]) -> BulkUpsertResult:
        inserted = modified = 0
        async with self._db.async_session_maker() as session, session.begin():
            for incoming in products:
                row = None
                if incoming.barcode:
                    row = await self._find_by_barcode(session, incoming.barcode)
                if row is None:
                    row = await session.get(ProductORM, incoming.id)

                winner = resolve_upsert(_to_domain(row) if row else None, incoming)
                if winner is None:
                    continue
                if row is None:
                    session.add(_new_row(winner))
                    # Sichtbar für nachfolgende Barcode-Lookups im selben Batch
                    await session.flush()
                    inserted += 1
                else:
                    _apply(row, winner)
                    modified += 1
        return BulkUpsertResult(inserted_count=inserted, modified_count=modified)

    async def list_since(self, timestamp: int) -> list[Product]:
        async with self._db.async_session_maker() as session:
            result = await session.execute(
                select(ProductORM)
                .where(ProductORM.updated_at > timestamp)
                .order_by(ProductORM.updated_at.desc(), _PRODUCT_ROWID)
            )
            return [_to_domain(row) for row in result.scalars()]

    async def list_all(self) -> list[Product]:
        async with self._db.async_session_maker() as session:
            result = await session.execute(select(ProductORM).order_by(_PRODUCT_ROWID))
            return [_to_domain(row) for row in result.scalars()]

    async def save(self, product: Product) -> Product:
        async with self._db.async_session_maker() as session, session.begin():
            row = await session.get(ProductORM, product.id)
            if row is None:
                session.add(_new_row(product))
            else:
                _apply(row, product)
        return product

    async def clear(self) -> None:
        async with self._db.async_session_maker() as session, session.begin():
            await session.execute(delete(ProductORM))


class SQLiteHistoryRepository(AbstractHistoryRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def append(self, entry: HistoryEntry, limit: int) -> HistoryEntry:
        async with self._db.async_session_maker() as session, session.begin():
            row = HistoryORM(
                product_id=entry.product_id,
                barcode=entry.barcode,
                product_name=entry.product_name,
                retail_price=entry.retail_price,
                timestamp=entry.timestamp,
            )
            session.add(row)
            await session.flush()

            count_stmt = select(func.count()).select_from(HistoryORM)
            total = (await session.execute(count_stmt)).scalar_one()
            if total > limit:
                oldest = (
                    select(HistoryORM.id)
                    .order_by(HistoryORM.timestamp.asc(), HistoryORM.id.asc())
                    .limit(total - limit)
                )
                await session.execute(delete(HistoryORM).where(HistoryORM.id.in_(oldest)))
        return entry.model_copy(update={"id": row.id})

    async def list_recent(self, limit: int) -> list[HistoryEntry]:
        async with self._db.async_session_maker() as session:
            result = await session.execute(
                select(HistoryORM)
                .order_by(HistoryORM.timestamp.desc(), HistoryORM.id.desc())
                .limit(limit)
            )
            return [
                HistoryEntry(
                    id=row.id,
                    product_id=row.product_id,
                    barcode=row.barcode,
                    product_name=row.product_name,
                    retail_price=row.retail_price,
                    timestamp=row.timestamp,
                )
                for row in result.scalars()
            ]

    async def clear(self) -> None:
        async with self._db.async_session_maker() as session, session.begin():
            await session.execute(delete(HistoryORM))


class SQLiteFavoriteRepository(AbstractFavoriteRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    async def find(self, product_id: str) -> FavoriteEntry | None:
        async with self._db.async_session_maker() as session:
            result = await session.execute(
                select(FavoriteORM).where(FavoriteORM.product_id == product_id)
            )
            row = result.scalar_one_or_none()
            if row:
                return FavoriteEntry(product_id=row.product_id, added_at=row.added_at)
            return None

    async def add(self, entry: FavoriteEntry) -> FavoriteEntry:
        async with self._db.async_session_maker() as session, session.begin():
            session.add(FavoriteORM(product_id=entry.product_id, added_at=entry.added_at))
        return entry

    async def remove(self, product_id: str) -> bool:
        async with self._db.async_session_maker() as session, session.begin():
            result = await session.execute(
                delete(FavoriteORM).where(FavoriteORM.product_id == product_id)
            )
            if isinstance(result, CursorResult):
                return bool(result.rowcount > 0)
            return False

    async def list_all(self) -> list[FavoriteEntry]:
        async with self._db.async_session_maker() as session:
            result = await session.execute(
                select(FavoriteORM).order_by(FavoriteORM.added_at.desc(), FavoriteORM.id.desc())
            )
            return [
                FavoriteEntry(product_id=row.product_id, added_at=row.added_at)
                for row in result.scalars()
            ]

    async def clear(self) -> None:
        async with self._db.async_session_maker() as session, session.begin():
            await session.execute(delete(FavoriteORM))
