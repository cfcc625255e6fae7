from __future__ import annotations

from typing import Dict

import socketio
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from .database import db
from .live import hub, sio
from .routers import drivers, hospitals, prealerts, recommendations

app = FastAPI(title="MedRoute API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(hospitals.router)
app.include_router(prealerts.router)
app.include_router(drivers.router)
app.include_router(recommendations.router)


@app.get("/health")
async def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.websocket("/ws/live")
async def live_websocket(websocket: WebSocket) -> None:
    await hub.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)


@sio.event
async def connect(sid, environ):  # pragma: no cover - socket handshake
    logger.debug("Socket client {} connected", sid)


@sio.event
async def disconnect(sid):  # pragma: no cover - socket handshake
    logger.debug("Socket client {} disconnected", sid)


socket_app = socketio.ASGIApp(sio, other_asgi_app=app)


@app.on_event("startup")
async def ensure_indexes() -> None:
    try:
        await db.get_collection("prealerts").create_index([("hospitalId", ASCENDING), ("createdAt", ASCENDING)])
        await db.get_collection("admissions").create_index([("hospitalId", ASCENDING)])
    except PyMongoError as exc:  # pragma: no cover - external service
        logger.warning("MongoDB unavailable; skipping index creation: {}", exc)
