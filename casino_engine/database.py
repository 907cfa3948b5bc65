import asyncpg
from casino_engine.config import settings

_pool: asyncpg.Pool = None

async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(settings.DATABASE_URL, min_size=2, max_size=10)
    return _pool

async def close_pool():
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None

async def create_tables():
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS balances (
                owner_id    VARCHAR(64),
                currency    VARCHAR(8),
                amount      NUMERIC(30,8) NOT NULL DEFAULT 0 CHECK (amount >= 0),
                PRIMARY KEY (owner_id, currency)
            );
            CREATE TABLE IF NOT EXISTS transactions (
                id          SERIAL PRIMARY KEY,
                owner_id    VARCHAR(64),
                type        VARCHAR(16),
                amount      NUMERIC(30,8),
                currency    VARCHAR(8),
                created_at  TIMESTAMPTZ DEFAULT NOW()
            );
            CREATE TABLE IF NOT EXISTS bets (
                seq         BIGSERIAL,
                id          VARCHAR(32) PRIMARY KEY,
                owner_id    VARCHAR(64),
                game_type   VARCHAR(32),
                bet_amount  NUMERIC(30,8),
                win_amount  NUMERIC(30,8),
                currency    VARCHAR(8),
                multiplier  NUMERIC(14,4),
                created_at  TIMESTAMPTZ,
                game_data   JSONB
            );
            CREATE INDEX IF NOT EXISTS bets_owner_seq ON bets(owner_id, seq);
        ''')
