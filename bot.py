import os
import sqlite3
import asyncio
import discord
from discord.ext import commands
from config.defaults import DEFAULT_DB_PATH
from config.defaults import DEFAULT_LIST_CHUNK_CHARS
from config.defaults import DEFAULT_TRIGGER_PREFIX
from config.defaults import DISCORD_MAX_MESSAGE_LEN
from db.migrate import apply_sqlite_migrations
from db.migrate import list_schema_migrations_sync
from db.migrate import missing_columns_sync
from misc.runtime_wiring import wire_bot_runtime
from registry.capture import CaptureFlow
from registry.chunking import split_text
from registry.reply_messages import load_reply_messages
from registry.service import CommandRegistry
from registry.sync import CommandSyncManager
from web.session import derive_session_key

# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")

if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")

# Persistent path (point this at a mounted volume in deployment)
DB_PATH = os.getenv("NKMZ_DB_PATH", DEFAULT_DB_PATH)

TRIGGER_PREFIX = os.getenv("NKMZ_TRIGGER_PREFIX", DEFAULT_TRIGGER_PREFIX).strip()
if len(TRIGGER_PREFIX) != 1:
    print(
        f"[CFG] invalid NKMZ_TRIGGER_PREFIX={TRIGGER_PREFIX!r}; "
        f"falling back to {DEFAULT_TRIGGER_PREFIX!r}"
    )
    TRIGGER_PREFIX = DEFAULT_TRIGGER_PREFIX

try:
    LIST_CHUNK_CHARS = int(os.getenv("NKMZ_LIST_CHUNK_CHARS", str(DEFAULT_LIST_CHUNK_CHARS)).strip())
except ValueError:
    LIST_CHUNK_CHARS = DEFAULT_LIST_CHUNK_CHARS
if not (0 < LIST_CHUNK_CHARS <= DISCORD_MAX_MESSAGE_LEN):
    print(f"[CFG] NKMZ_LIST_CHUNK_CHARS={LIST_CHUNK_CHARS} out of range; using {DEFAULT_LIST_CHUNK_CHARS}")
    LIST_CHUNK_CHARS = DEFAULT_LIST_CHUNK_CHARS

# Optional: when set, capture tokens are sealed (HMAC) instead of plain message ids.
SESSION_SECRET = os.getenv("NKMZ_SESSION_SECRET", "").strip()
SESSION_KEY = derive_session_key(SESSION_SECRET) if SESSION_SECRET else None

REPLY_MESSAGES_PATH = os.getenv(
    "NKMZ_REPLY_MESSAGES_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "config", "reply_messages.yml"),
)
REPLY_MESSAGES, REPLY_MESSAGES_WARNING = load_reply_messages(REPLY_MESSAGES_PATH)

print(
    f"[CFG] prefix={TRIGGER_PREFIX!r} list_chunk_chars={LIST_CHUNK_CHARS} "
    f"sealed_capture_tokens={SESSION_KEY is not None}"
)
print(f"[CFG] reply_messages={REPLY_MESSAGES.version} path={REPLY_MESSAGES_PATH}")
if REPLY_MESSAGES_WARNING:
    print(f"[CFG] {REPLY_MESSAGES_WARNING}")


# =========================
# SQLITE
# =========================
def init_db(db_path: str) -> sqlite3.Connection:
    # check_same_thread=False because discord.py event loop + to_thread usage
    conn = sqlite3.connect(db_path, check_same_thread=False)
    cur = conn.cursor()

    # Performance + safety defaults
    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    repo_root = os.path.dirname(os.path.abspath(__file__))
    apply_sqlite_migrations(conn, os.path.join(repo_root, "migrations"))

    try:
        missing = missing_columns_sync(conn, "guild_commands", ["guild_id", "name", "response"])
        print(f"[DB] guild_commands schema OK={not missing} missing={missing}")
        versions = [v for v, _name, _at in list_schema_migrations_sync(conn)]
        print(f"[DB] migrations applied={versions}")
    except sqlite3.Error as e:
        print(f"[DB] Schema verification failed: {e}")

    conn.commit()
    return conn

db_conn = init_db(DB_PATH)
print(f"[DB] Using DB_PATH={DB_PATH}")
db_lock = asyncio.Lock()

registry = CommandRegistry(db_lock=db_lock, db_conn=db_conn)
capture_flow = CaptureFlow(registry=registry, token_key=SESSION_KEY)


async def send_chunked(message: discord.Message, text: str) -> None:
    # First part answers the trigger; the rest follow in the channel.
    parts = split_text(text, DISCORD_MAX_MESSAGE_LEN)
    await message.reply(parts[0], mention_author=False)
    for part in parts[1:]:
        await message.channel.send(part)


# =========================
# DISCORD BOT
# =========================
intents = discord.Intents.default()
intents.message_content = True

bot = commands.Bot(command_prefix=commands.when_mentioned, intents=intents)


async def replace_guild_commands(guild_id: int, payload: list[dict]) -> list:
    # Bulk overwrite: whatever was registered before is replaced by payload.
    return await bot.http.bulk_upsert_guild_commands(bot.application_id, guild_id, payload)

sync_manager = CommandSyncManager(replace_guild_commands=replace_guild_commands)

wire_bot_runtime(
    bot,
    registry=registry,
    capture_flow=capture_flow,
    sync_manager=sync_manager,
    reply_messages=REPLY_MESSAGES,
    send_chunked=send_chunked,
    trigger_prefix=TRIGGER_PREFIX,
    list_chunk_chars=LIST_CHUNK_CHARS,
)

bot.run(DISCORD_TOKEN)
