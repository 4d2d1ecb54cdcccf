from __future__ import annotations
import os
import logging
from datetime import datetime, timezone
from typing import Optional, List, Literal, Dict, Any

from fastapi import FastAPI, HTTPException, Depends, status, Response, Cookie, Request, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field
from jose import jwt, JWTError
import bcrypt
import hashlib
from sqlalchemy import (
    create_engine, MetaData, Table, Column,
    String, BigInteger, Integer, Float, Text,
    select, insert, update, delete, and_, case, text, func
)
from sqlalchemy.engine import Engine
from sqlalchemy import inspect

import analytics
import assistant
from logging_config import configure_logging
from ordering import ORDER_STEP, drop_order, rebalanced

configure_logging()
logger = logging.getLogger("focusflow")

def normalize_database_url(url: str) -> str:
    return "postgresql://" + url[len("postgres://"):] if url.startswith("postgres://") else url

def get_engine() -> Engine:
    db_url = os.getenv("DATABASE_URL", "").strip()
    if db_url:
        db_url = normalize_database_url(db_url)
        if db_url.startswith("postgresql://") and "+psycopg2" not in db_url:
            db_url = db_url.replace("postgresql://", "postgresql+psycopg2://", 1)
    else:
        db_url = "sqlite:///./focusflow.db"
    return create_engine(db_url, future=True, pool_pre_ping=True)

engine = get_engine()
metadata = MetaData()

# --- Auth / Users ---

bearer = HTTPBearer(auto_error=False)

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ALG = "HS256"
JWT_TTL_SECONDS = int(os.getenv("JWT_TTL_SECONDS", "2592000"))  # 30d
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

AUTH_COOKIE = os.getenv("AUTH_COOKIE", "ff_token")

def _set_auth_cookie(resp: Response, token: str):
    resp.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        max_age=JWT_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=True,
        path="/",
    )

def _clear_auth_cookie(resp: Response):
    resp.delete_cookie(key=AUTH_COOKIE, path="/")

def _pw_prehash(pw: str) -> bytes:
    """Pre-hash to avoid bcrypt's 72-byte input limit."""
    return hashlib.sha256(pw.encode("utf-8")).digest()

def hash_password(pw: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_pw_prehash(pw), salt).decode("utf-8")

def verify_password(pw: str, pw_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_pw_prehash(pw), pw_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False

def create_token(user_id: str) -> str:
    exp = now_ts() + JWT_TTL_SECONDS
    return jwt.encode({"sub": user_id, "exp": exp}, JWT_SECRET, algorithm=JWT_ALG)

def require_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    ff_token: str | None = Cookie(default=None, alias=AUTH_COOKIE),
) -> dict:
    token = None
    if creds and creds.credentials:
        token = creds.credentials
    # Some proxies strip the Authorization header.
    elif request.headers.get("x-auth-token"):
        token = request.headers.get("x-auth-token")
    elif ff_token:
        token = ff_token
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
        uid = payload.get("sub")
        if not uid:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    with engine.connect() as conn:
        u = conn.execute(select(users).where(users.c.id == uid)).mappings().first()
    if not u:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return u

users = Table(
    "users", metadata,
    Column("id", String, primary_key=True),
    Column("email", String, nullable=False, unique=True),
    Column("name", String, nullable=True),
    Column("password_hash", String, nullable=False),
    Column("created_at", BigInteger, nullable=False),
)

tasks = Table(
    "tasks", metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("title", String, nullable=False),
    Column("description", Text, nullable=True),
    Column("status", String, nullable=False, server_default="todo"),
    Column("priority", String, nullable=False, server_default="medium"),
    Column("due_date", String, nullable=True),
    Column("order_index", Float, nullable=True),
    Column("created_at", BigInteger, nullable=False),
    Column("updated_at", BigInteger, nullable=False),
    Column("completed_at", BigInteger, nullable=True),
)

focus_sessions = Table(
    "focus_sessions", metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("task_id", String, nullable=True),
    Column("type", String, nullable=False),
    Column("duration", Integer, nullable=False),
    Column("status", String, nullable=False, server_default="running"),
    Column("start_time", BigInteger, nullable=False),
    Column("end_time", BigInteger, nullable=True),
    Column("created_at", BigInteger, nullable=False),
)

def now_ts() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp())

def gen_id() -> str:
    return f"{now_ts()}_{os.urandom(4).hex()}"

def today_str() -> str:
    return datetime.fromtimestamp(now_ts(), tz=timezone.utc).date().isoformat()

def validate_date_str(d: Optional[str]) -> Optional[str]:
    """Normalise a due date to YYYY-MM-DD. Full ISO timestamps keep their date part."""
    if d is None: return None
    d = d.strip()
    if not d: return None
    if len(d) > 10 and d[10] in "T ":
        d = d[:10]
    try:
        datetime.strptime(d, "%Y-%m-%d")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")
    return d

def ensure_columns(table_name: str, required: dict[str, str]) -> None:
    insp = inspect(engine)
    cols = {c["name"] for c in insp.get_columns(table_name)} if insp.has_table(table_name) else set()
    with engine.begin() as conn:
        for col, ddl in required.items():
            if col not in cols:
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {ddl}"))

def init_db():
    """
    Create tables if missing and add columns introduced after the first release.

    metadata.create_all() does NOT add missing columns to existing tables.
    """
    metadata.create_all(engine)

    insp = inspect(engine)
    if insp.has_table("users"):
        ensure_columns("users", {"name": "name TEXT"})
    if insp.has_table("tasks"):
        ensure_columns("tasks", {
            "description": "description TEXT",
            "order_index": "order_index FLOAT",
            "completed_at": "completed_at BIGINT",
        })

init_db()

app = FastAPI(title="FocusFlow")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=False, allow_methods=["*"], allow_headers=["*"])

TaskStatus = Literal["todo", "in-progress", "completed"]
Priority = Literal["low", "medium", "high"]
Sort = Literal["created", "manual", "due"]
SessionType = Literal["pomodoro", "short-break", "long-break"]

TIMER_DURATIONS: Dict[str, int] = {
    "pomodoro": 25 * 60,
    "short-break": 5 * 60,
    "long-break": 15 * 60,
}
TIMER_LABELS: Dict[str, str] = {
    "pomodoro": "Pomodoro",
    "short-break": "Short Break",
    "long-break": "Long Break",
}

class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Priority = "medium"
    status: TaskStatus = "todo"
    dueDate: Optional[str] = None

class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    dueDate: Optional[str] = None

class TaskMove(BaseModel):
    status: Optional[TaskStatus] = None
    index: Optional[int] = Field(default=None, ge=0)
    overId: Optional[str] = None
    after: bool = False
    order: Optional[float] = None

class ReorderPayload(BaseModel):
    status: TaskStatus
    orderedIds: List[str]

class TaskOut(BaseModel):
    id: str; title: str; description: Optional[str] = None
    status: str; priority: str
    dueDate: Optional[str] = None
    order: Optional[float] = None
    createdAt: int; updatedAt: int; completedAt: Optional[int] = None

class SessionStart(BaseModel):
    taskId: Optional[str] = None
    type: SessionType = "pomodoro"
    duration: Optional[int] = Field(default=None, ge=1, le=24 * 3600)

class SessionComplete(BaseModel):
    endTime: Optional[int] = None

class SessionOut(BaseModel):
    id: str; type: str; duration: int; status: str
    startTime: int; endTime: Optional[int] = None
    taskId: Optional[str] = None; taskTitle: Optional[str] = None

class TimerPreset(BaseModel):
    type: str; label: str; duration: int

class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str

class ChatRequest(BaseModel):
    message: str = ""
    history: List[ChatTurn] = Field(default_factory=list)

def to_task_out(r) -> TaskOut:
    return TaskOut(
        id=r["id"], title=r["title"], description=r["description"],
        status=r["status"], priority=r["priority"], dueDate=r["due_date"],
        order=(float(r["order_index"]) if r["order_index"] is not None else None),
        createdAt=int(r["created_at"]), updatedAt=int(r["updated_at"]),
        completedAt=(int(r["completed_at"]) if r["completed_at"] is not None else None),
    )

def to_session_out(r) -> SessionOut:
    return SessionOut(
        id=r["id"], type=r["type"], duration=int(r["duration"]), status=r["status"],
        startTime=int(r["start_time"]),
        endTime=(int(r["end_time"]) if r["end_time"] is not None else None),
        taskId=r["task_id"], taskTitle=r.get("task_title"),
    )

# --- Auth API ---

class AuthSignup(BaseModel):
    email: str = Field(min_length=3, max_length=200)
    password: str = Field(min_length=6, max_length=200)
    name: Optional[str] = Field(default=None, max_length=100)

class AuthLogin(BaseModel):
    email: str = Field(min_length=3, max_length=200)
    password: str = Field(min_length=1, max_length=200)

class UserOut(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    createdAt: int

class AuthOut(BaseModel):
    token: str
    user: UserOut

def to_user_out(r) -> UserOut:
    return UserOut(id=r["id"], email=r["email"], name=r["name"], createdAt=int(r["created_at"]))

def valid_email(email: str) -> bool:
    """local@domain.tld with no empty domain labels."""
    local, sep, domain = email.rpartition("@")
    labels = domain.split(".")
    return bool(sep and local) and "@" not in local and len(labels) > 1 and all(labels) and not any(c.isspace() for c in email)

@app.post("/api/auth/signup", response_model=AuthOut, status_code=201)
def signup(payload: AuthSignup, response: Response):
    email = payload.email.strip().lower()
    if not valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    name = payload.name.strip() if payload.name and payload.name.strip() else None
    uid = gen_id()
    with engine.begin() as conn:
        if conn.execute(select(users.c.id).where(users.c.email == email)).first():
            raise HTTPException(status_code=400, detail="User already exists")
        conn.execute(insert(users).values(
            id=uid, email=email, name=name, password_hash=hash_password(payload.password), created_at=now_ts()))
        u = conn.execute(select(users).where(users.c.id == uid)).mappings().first()
    logger.info("user %s signed up", uid)
    token = create_token(uid)
    _set_auth_cookie(response, token)
    return AuthOut(token=token, user=to_user_out(u))

@app.post("/api/auth/login", response_model=AuthOut)
def login(payload: AuthLogin, response: Response):
    email = payload.email.strip().lower()
    with engine.connect() as conn:
        u = conn.execute(select(users).where(users.c.email == email)).mappings().first()
    if not u or not verify_password(payload.password, u["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    token = create_token(u["id"])
    _set_auth_cookie(response, token)
    return AuthOut(token=token, user=to_user_out(u))

@app.post("/api/auth/logout")
def auth_logout(response: Response):
    _clear_auth_cookie(response)
    return {"ok": True}

@app.get("/api/auth/me", response_model=UserOut)
def me(user=Depends(require_user)):
    return to_user_out(user)

@app.get("/api/health")
def health(): return {"ok": True, "today": today_str()}

# --- Task operations (shared by the REST API and the chat assistant) ---

def owned_task(conn, user_id: str, task_id: str):
    row = conn.execute(select(tasks).where(and_(tasks.c.id == task_id, tasks.c.user_id == user_id))).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Task not found")
    return row

def column_end_order(conn, user_id: str, task_status: str) -> float:
    cur = conn.execute(
        select(func.max(tasks.c.order_index)).where(and_(tasks.c.user_id == user_id, tasks.c.status == task_status))
    ).scalar()
    return (float(cur) if cur is not None else 0.0) + ORDER_STEP

def status_values(new_status: str, old_status: Optional[str]) -> dict:
    if new_status == old_status:
        return {}
    return {"status": new_status, "completed_at": now_ts() if new_status == "completed" else None}

def board_order():
    """Column display order: by order_index, unordered cards last."""
    nulls_last = case((tasks.c.order_index.is_(None), 1), else_=0)
    return nulls_last.asc(), tasks.c.order_index.asc(), tasks.c.created_at.desc()

def fetch_tasks(user_id: str, task_status: Optional[str] = None, priority: Optional[str] = None, sort: str = "created"):
    conds = [tasks.c.user_id == user_id]
    if task_status: conds.append(tasks.c.status == task_status)
    if priority: conds.append(tasks.c.priority == priority)
    stmt = select(tasks).where(and_(*conds))
    if sort == "manual":
        stmt = stmt.order_by(*board_order())
    elif sort == "due":
        nulls_last = case((tasks.c.due_date.is_(None), 1), else_=0)
        stmt = stmt.order_by(nulls_last.asc(), tasks.c.due_date.asc(), tasks.c.created_at.desc())
    else:
        stmt = stmt.order_by(tasks.c.created_at.desc(), tasks.c.id.desc())
    with engine.connect() as conn:
        return conn.execute(stmt).mappings().all()

def create_task_for(user_id: str, payload: TaskCreate):
    title = payload.title.strip()
    if not title: raise HTTPException(status_code=400, detail="Title is empty")
    due = validate_date_str(payload.dueDate)
    tid = gen_id(); ts = now_ts()
    with engine.begin() as conn:
        stmt = insert(tasks).values(
            id=tid, user_id=user_id, title=title,
            description=(payload.description if payload.description and payload.description.strip() else None),
            status=payload.status, priority=payload.priority, due_date=due,
            order_index=column_end_order(conn, user_id, payload.status),
            created_at=ts, updated_at=ts,
            completed_at=(ts if payload.status == "completed" else None),
        ).returning(tasks)
        row = conn.execute(stmt).mappings().first()
    return row

def update_task_for(user_id: str, task_id: str, payload: TaskUpdate):
    fields = payload.model_fields_set
    with engine.connect() as conn:
        cur = owned_task(conn, user_id, task_id)
    values = {}
    if payload.title is not None:
        t = payload.title.strip()
        if not t: raise HTTPException(status_code=400, detail="Title is empty")
        values["title"] = t
    if "description" in fields:
        values["description"] = payload.description if payload.description and payload.description.strip() else None
    if payload.status is not None:
        values.update(status_values(payload.status, cur["status"]))
        values.setdefault("status", payload.status)
    if payload.priority is not None: values["priority"] = payload.priority
    if "dueDate" in fields: values["due_date"] = validate_date_str(payload.dueDate)
    if not values: raise HTTPException(status_code=400, detail="Nothing to update")
    values["updated_at"] = now_ts()
    stmt = update(tasks).where(and_(tasks.c.id == task_id, tasks.c.user_id == user_id)).values(**values).returning(tasks)
    with engine.begin() as conn:
        row = conn.execute(stmt).mappings().first()
    return row

def delete_task_for(user_id: str, task_id: str) -> None:
    with engine.begin() as conn:
        res = conn.execute(delete(tasks).where(and_(tasks.c.id == task_id, tasks.c.user_id == user_id)))
        if res.rowcount == 0: raise HTTPException(status_code=404, detail="Task not found")
        # sessions outlive their task
        conn.execute(update(focus_sessions).where(and_(
            focus_sessions.c.task_id == task_id, focus_sessions.c.user_id == user_id)).values(task_id=None))
    logger.info("task %s deleted by %s", task_id, user_id)

@app.get("/api/tasks", response_model=List[TaskOut])
def list_tasks(status: Optional[TaskStatus] = None, priority: Optional[Priority] = None, sort: Sort = "created",
               user=Depends(require_user)):
    return [to_task_out(r) for r in fetch_tasks(user["id"], status, priority, sort)]

@app.post("/api/tasks", response_model=TaskOut, status_code=201)
def create_task(payload: TaskCreate, user=Depends(require_user)):
    return to_task_out(create_task_for(user["id"], payload))

@app.patch("/api/tasks/{task_id}", response_model=TaskOut)
def update_task(task_id: str, payload: TaskUpdate, user=Depends(require_user)):
    return to_task_out(update_task_for(user["id"], task_id, payload))

@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, user=Depends(require_user)):
    delete_task_for(user["id"], task_id)
    return {"deleted": True}

@app.post("/api/tasks/reorder")
def reorder_tasks(payload: ReorderPayload, user=Depends(require_user)):
    ordered = [x for x in payload.orderedIds if isinstance(x, str) and x.strip()]
    if not ordered: raise HTTPException(status_code=400, detail="orderedIds required")
    with engine.begin() as conn:
        for tid, order in zip(ordered, rebalanced(len(ordered))):
            conn.execute(update(tasks).where(and_(
                tasks.c.id == tid, tasks.c.status == payload.status, tasks.c.user_id == user["id"]
            )).values(order_index=order))
    return {"ok": True}

@app.post("/api/tasks/{task_id}/move", response_model=TaskOut)
def move_task(task_id: str, payload: TaskMove, user=Depends(require_user)):
    """Drop a card onto a column or next to another card."""
    uid = user["id"]
    with engine.begin() as conn:
        cur = owned_task(conn, uid, task_id)
        new_status = payload.status or cur["status"]
        over = None
        if payload.overId and payload.overId != task_id:
            over = owned_task(conn, uid, payload.overId)
            if payload.status is None:
                new_status = over["status"]

        values = status_values(new_status, cur["status"])
        if payload.order is not None:
            values["order_index"] = float(payload.order)
        else:
            rows = conn.execute(
                select(tasks.c.id, tasks.c.order_index)
                .where(and_(tasks.c.user_id == uid, tasks.c.status == new_status, tasks.c.id != task_id))
                .order_by(*board_order())
            ).all()
            column = list(rows)
            ids = [r.id for r in column]
            if over is not None and over["id"] in ids:
                idx = ids.index(over["id"]) + (1 if payload.after else 0)
            elif payload.index is not None:
                idx = min(payload.index, len(ids))
            else:
                idx = len(ids)

            new_order = drop_order([r.order_index for r in column], idx)
            if new_order is None:
                ids.insert(idx, task_id)
                orders = rebalanced(len(ids))
                for tid, order in zip(ids, orders):
                    if tid != task_id:
                        conn.execute(update(tasks).where(tasks.c.id == tid).values(order_index=order))
                new_order = orders[idx]
                logger.info("rebalanced %s column for %s (%d tasks)", new_status, uid, len(ids))
            values["order_index"] = new_order

        values["updated_at"] = now_ts()
        row = conn.execute(
            update(tasks).where(and_(tasks.c.id == task_id, tasks.c.user_id == uid)).values(**values).returning(tasks)
        ).mappings().first()
    return to_task_out(row)

# --- Focus sessions ---

def owned_session(conn, user_id: str, session_id: str):
    row = conn.execute(select(focus_sessions).where(and_(
        focus_sessions.c.id == session_id, focus_sessions.c.user_id == user_id))).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Session not found")
    if row["status"] != "running":
        raise HTTPException(status_code=400, detail="Session is not running")
    return row

def fetch_sessions(user_id: str, since: Optional[int] = None, limit: Optional[int] = None):
    stmt = (
        select(focus_sessions, tasks.c.title.label("task_title"))
        .select_from(focus_sessions.outerjoin(tasks, tasks.c.id == focus_sessions.c.task_id))
        .where(focus_sessions.c.user_id == user_id)
        .order_by(focus_sessions.c.start_time.desc(), focus_sessions.c.created_at.desc())
    )
    if since is not None: stmt = stmt.where(focus_sessions.c.start_time >= since)
    if limit is not None: stmt = stmt.limit(limit)
    with engine.connect() as conn:
        return conn.execute(stmt).mappings().all()

@app.get("/api/timer/presets", response_model=List[TimerPreset])
def timer_presets():
    return [TimerPreset(type=k, label=TIMER_LABELS[k], duration=v) for k, v in TIMER_DURATIONS.items()]

@app.post("/api/sessions", response_model=SessionOut, status_code=201)
def start_session(payload: SessionStart, user=Depends(require_user)):
    sid = gen_id(); ts = now_ts()
    task_title = None
    with engine.begin() as conn:
        task_id = payload.taskId.strip() if payload.taskId else None
        if task_id:
            task_title = owned_task(conn, user["id"], task_id)["title"]
        row = conn.execute(insert(focus_sessions).values(
            id=sid, user_id=user["id"], task_id=task_id, type=payload.type,
            duration=payload.duration or TIMER_DURATIONS[payload.type],
            status="running", start_time=ts, end_time=None, created_at=ts,
        ).returning(focus_sessions)).mappings().first()
    out = to_session_out(row)
    out.taskTitle = task_title
    return out

@app.post("/api/sessions/{session_id}/complete", response_model=SessionOut)
def complete_session(session_id: str, payload: Optional[SessionComplete] = None, user=Depends(require_user)):
    end = payload.endTime if payload and payload.endTime is not None else now_ts()
    with engine.begin() as conn:
        cur = owned_session(conn, user["id"], session_id)
        if end < cur["start_time"]:
            raise HTTPException(status_code=400, detail="endTime is before startTime")
        conn.execute(update(focus_sessions).where(focus_sessions.c.id == session_id).values(status="completed", end_time=end))
    return to_session_out(fetch_session(user["id"], session_id))

@app.post("/api/sessions/{session_id}/cancel", response_model=SessionOut)
def cancel_session(session_id: str, user=Depends(require_user)):
    with engine.begin() as conn:
        owned_session(conn, user["id"], session_id)
        conn.execute(update(focus_sessions).where(focus_sessions.c.id == session_id).values(status="cancelled", end_time=now_ts()))
    return to_session_out(fetch_session(user["id"], session_id))

def fetch_session(user_id: str, session_id: str):
    stmt = (
        select(focus_sessions, tasks.c.title.label("task_title"))
        .select_from(focus_sessions.outerjoin(tasks, tasks.c.id == focus_sessions.c.task_id))
        .where(and_(focus_sessions.c.id == session_id, focus_sessions.c.user_id == user_id))
    )
    with engine.connect() as conn:
        return conn.execute(stmt).mappings().first()

@app.get("/api/sessions", response_model=List[SessionOut])
def list_sessions(days: int = Query(default=30, ge=1, le=365), user=Depends(require_user)):
    since = now_ts() - days * 86400
    return [to_session_out(r) for r in fetch_sessions(user["id"], since=since)]

# --- Analytics & AI ---

@app.get("/api/analytics")
def get_analytics(days: int = Query(default=30, ge=1, le=365), user=Depends(require_user)):
    since = now_ts() - days * 86400
    return analytics.summarize(fetch_sessions(user["id"], since=since), fetch_tasks(user["id"]))

@app.get("/api/ai/insights")
def get_insights(user=Depends(require_user)):
    sessions = fetch_sessions(user["id"], limit=50)
    return assistant.generate_insights(assistant.insights_client, sessions, fetch_tasks(user["id"]))

@app.get("/api/chat/suggestions")
def chat_suggestions(user=Depends(require_user)):
    return {"suggestions": assistant.suggested_actions(fetch_tasks(user["id"]), today_str())}

def chat_handlers(user_id: str) -> Dict[str, Any]:
    """Task operations the model may call, bound to one user."""
    def create(args):
        row = create_task_for(user_id, TaskCreate(**args))
        return {"success": True, "task": to_task_out(row).model_dump()}

    def update_(args):
        task_id = str(args.get("id") or "")
        fields = {k: v for k, v in args.items() if k != "id"}
        row = update_task_for(user_id, task_id, TaskUpdate(**fields))
        return {"success": True, "task": to_task_out(row).model_dump()}

    def delete_(args):
        delete_task_for(user_id, str(args.get("id") or ""))
        return {"success": True, "message": "Task deleted successfully"}

    def list_(args):
        return {"tasks": [to_task_out(r).model_dump() for r in fetch_tasks(user_id)]}

    return {"createTask": create, "updateTask": update_, "deleteTask": delete_, "listTasks": list_}

@app.post("/api/chat")
def chat(payload: ChatRequest, user=Depends(require_user)):
    if not payload.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    if not assistant.GROQ_API_KEY:
        return JSONResponse(status_code=500, content={
            "error": "AI service not configured",
            "message": "Please contact the administrator to set up the AI service.",
        })
    try:
        return assistant.run_chat(
            assistant.chat_client(), payload.message,
            [t.model_dump() for t in payload.history],
            fetch_tasks(user["id"]), chat_handlers(user["id"]),
        )
    except Exception:
        logger.exception("chat request failed for %s", user["id"])
        return JSONResponse(status_code=500, content={
            "error": "Failed to process chat message",
            "message": "Sorry, something went wrong. Please try again.",
        })

FRONT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "frontend")
if os.path.isdir(FRONT_DIR):
    app.mount("/", StaticFiles(directory=FRONT_DIR, html=True), name="frontend")
