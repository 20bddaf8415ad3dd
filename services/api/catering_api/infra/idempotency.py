import hashlib, json
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .redis_client import get_redis

DONE_TTL_SEC = 60 * 60 * 24
PROCESSING_TTL_SEC = 60

def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()

def _hash_request(method: str, path: str, body_bytes: bytes) -> str:
    h = hashlib.sha256()
    h.update(method.encode("utf-8"))
    h.update(b"|")
    h.update(path.encode("utf-8"))
    h.update(b"|")
    h.update(body_bytes or b"")
    return h.hexdigest()

def _idemp_redis_key(route_key: str, idem_key: str) -> str:
    return f"catering:idemp:{route_key}:{idem_key}"

async def idempotency_precheck(request: Request, *, route_key: str, required: bool = False) -> Union[tuple[str, str, bytes], JSONResponse, None]:
    """Return (redis_key, request_hash, body_bytes) if caller should proceed.
       Return JSONResponse if a cached response should be replayed.
       Return None when no Idempotency-Key was sent and it is optional."""
    idem_key = request.headers.get("Idempotency-Key")
    if not idem_key:
        if required:
            raise HTTPException(status_code=400, detail="Missing Idempotency-Key header")
        return None

    body_bytes = await request.body()
    req_hash = _hash_request(request.method, request.url.path, body_bytes)

    rkey = _idemp_redis_key(route_key, idem_key)
    r = await get_redis()

    raw = await r.get(rkey)
    if raw:
        data = json.loads(raw)
        # Same key with a different payload is a client bug, not a retry
        if data.get("request_hash") and data["request_hash"] != req_hash:
            raise HTTPException(status_code=409, detail="Idempotency-Key reused with different request payload")
        if data.get("state") == "done":
            return JSONResponse(content=data.get("body"), status_code=int(data.get("status", 200)), headers=data.get("headers") or {})
        raise HTTPException(status_code=409, detail="Request with this Idempotency-Key is still processing. Retry shortly.")

    # Acquire processing lock using SET NX
    processing_payload = {
        "state": "processing",
        "status": None,
        "headers": {"content-type": "application/json"},
        "body": None,
        "created_at": _iso_now(),
        "completed_at": None,
        "request_hash": req_hash,
    }
    ok = await r.set(rkey, json.dumps(processing_payload), ex=PROCESSING_TTL_SEC, nx=True)
    if not ok:
        # someone else won the race
        raise HTTPException(status_code=409, detail="Request with this Idempotency-Key is still processing. Retry shortly.")

    return (rkey, req_hash, body_bytes)

async def idempotency_store_result(redis_key: str, req_hash: str, *, status: int, body: dict, headers: Optional[dict] = None):
    r = await get_redis()
    payload = {
        "state": "done",
        "status": int(status),
        "headers": headers or {"content-type": "application/json"},
        "body": body,
        "created_at": None,
        "completed_at": _iso_now(),
        "request_hash": req_hash,
    }
    await r.set(redis_key, json.dumps(payload), ex=DONE_TTL_SEC)

async def idempotency_clear_key(redis_key: str):
    """Release the processing lock after a failed request."""
    r = await get_redis()
    await r.delete(redis_key)
