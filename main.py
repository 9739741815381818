import asyncio
import logging
import re
from contextlib import asynccontextmanager
from datetime import timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings
from database import BETS, VOTES, Database
from schemas import Bet, BetRequest, Vote, VoteRequest

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500

VOTE_FIELDS = {"_id": 0, "voterName": 1, "votedFor": 1, "timestamp": 1}
BET_FIELDS = {"_id": 0, "betterName": 1, "amount": 1, "betOn": 1, "timestamp": 1}
NEWEST_FIRST = [("timestamp", DESCENDING), ("_id", DESCENDING)]


# ---------- Dependencies ----------
def get_database(request: Request) -> Database:
    return request.app.state.database


def require_database(database: Database = Depends(get_database)) -> Database:
    """Short-circuit data endpoints with 503 until MongoDB is connected."""
    if not database.ready:
        raise HTTPException(status_code=503, detail=database.status.model_dump())
    return database


# ---------- Helpers ----------
def parse_limit(raw: Optional[str]) -> int:
    # leading integer, e.g. "25abc" -> 25; anything unusable falls back to the default
    match = re.match(r"\s*([+-]?\d+)", raw or "")
    limit = int(match.group(1)) if match else 0
    if limit < 1:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def public(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    ts = doc.get("timestamp")
    if ts is not None and ts.tzinfo is None:
        doc["timestamp"] = ts.replace(tzinfo=timezone.utc)  # stored as naive UTC
    return doc


def grouped(db, collection_name: str, key: str, accumulator) -> dict:
    rows = db[collection_name].aggregate([{"$group": {"_id": f"${key}", "value": {"$sum": accumulator}}}])
    return {row["_id"]: row["value"] for row in rows}


def vote_totals(db) -> dict:
    counts = grouped(db, VOTES, "votedFor", 1)
    return {"player1Votes": counts.get("player1", 0), "player2Votes": counts.get("player2", 0)}


def bet_totals(db) -> dict:
    sums = grouped(db, BETS, "betOn", "$amount")
    return {"player1Bets": sums.get("player1", 0), "player2Bets": sums.get("player2", 0)}


def recent(database: Database, collection_name: str, fields: dict, limit: Optional[str]) -> List[dict]:
    docs = database.get_documents(collection_name, projection=fields, sort=NEWEST_FIRST, limit=parse_limit(limit))
    return [public(d) for d in docs]


# ---------- Routes ----------
router = APIRouter(prefix="/api")


@router.get("/health")
def health(database: Database = Depends(get_database)):
    return {"ok": True, "db": database.status.model_dump()}


@router.get("/votes/totals")
def get_vote_totals(database: Database = Depends(require_database)):
    return vote_totals(database.db)


@router.get("/bets/totals")
def get_bet_totals(database: Database = Depends(require_database)):
    return bet_totals(database.db)


@router.get("/votes/recent")
def recent_votes(limit: Optional[str] = None, database: Database = Depends(require_database)):
    return recent(database, VOTES, VOTE_FIELDS, limit)


@router.get("/bets/recent")
def recent_bets(limit: Optional[str] = None, database: Database = Depends(require_database)):
    return recent(database, BETS, BET_FIELDS, limit)


@router.get("/users/{name}")
def get_user(name: str, database: Database = Depends(require_database)):
    name = name.strip()
    vote = public(database.db[VOTES].find_one({"voterName": name}, VOTE_FIELDS))
    bet = public(database.db[BETS].find_one({"betterName": name}, BET_FIELDS))
    return {
        "hasVoted": vote["votedFor"] if vote else None,
        "hasBet": bet["betOn"] if bet else None,
        "userVotes": [vote] if vote else [],
        "userBets": [bet] if bet else [],
    }


@router.post("/votes", status_code=201)
def create_vote(body: VoteRequest, database: Database = Depends(require_database)):
    try:
        database.create_document(VOTES, Vote(voterName=body.voterName, votedFor=body.votedFor))
        totals = vote_totals(database.db)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Already voted")
    except PyMongoError:
        logger.exception("Failed to record vote for %r", body.voterName)
        raise HTTPException(status_code=500, detail="Server error")
    return {"ok": True, "totals": totals}


@router.post("/bets", status_code=201)
def create_bet(body: BetRequest, database: Database = Depends(require_database)):
    try:
        database.create_document(BETS, Bet(betterName=body.betterName, amount=body.amount, betOn=body.betOn))
        totals = bet_totals(database.db)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Already placed bet")
    except PyMongoError:
        logger.exception("Failed to record bet for %r", body.betterName)
        raise HTTPException(status_code=500, detail="Server error")
    return {"ok": True, "totals": totals}


# ---------- Error handlers ----------
async def http_error(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def invalid_payload(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid payload"})


async def server_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Server error"})


# ---------- App ----------
def _log_task_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Database connection task stopped", exc_info=task.exception())


@asynccontextmanager
async def lifespan(app: FastAPI):
    database: Database = app.state.database
    task = None
    if not database.ready:
        task = asyncio.create_task(database.connect_with_retry())
        task.add_done_callback(_log_task_failure)
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        database.close()
        logger.info("Shutdown complete")


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    app = FastAPI(title="Player Vote & Bet API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database or Database(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_error)
    app.add_exception_handler(RequestValidationError, invalid_payload)
    app.add_exception_handler(Exception, server_error)

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=settings.host, port=settings.port)
