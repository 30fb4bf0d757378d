from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging
import socket as socketlib

import config
config.setup_logging()

from quiz_session import QuizSession
from socket_manager import SocketManager

logger = logging.getLogger(__name__)

socket_manager = SocketManager()
quiz_session = QuizSession(socket_manager)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting fastest-finger quiz backend")
    logger.info("Participants can join at http://%s:%d", get_local_ip(), config.PORT)
    yield
    quiz_session.timer.stop()
    logger.info("Shutting down fastest-finger quiz backend")


app = FastAPI(title="Fastest-Finger Quiz Backend", lifespan=lifespan)


def get_local_ip():
    try:
        s = socketlib.socket(socketlib.AF_INET, socketlib.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except Exception:
        return "127.0.0.1"


@app.get("/system/info")
async def get_system_info():
    return {"ip": get_local_ip()}


@app.get("/state")
async def get_state():
    """Read-only snapshot of the current session."""
    return quiz_session.snapshot()


@app.websocket("/ws/{client_id}")
async def websocket_endpoint(websocket: WebSocket, client_id: str, admin: bool = False):
    await socket_manager.connect(websocket, quiz_session, client_id, is_admin=admin)


# Configure CORS
if config.ALLOWED_ORIGINS.strip():
    origins = [o.strip() for o in config.ALLOWED_ORIGINS.split(",")]
    socket_manager.allowed_origins = origins
else:
    local_ip = get_local_ip()
    origins = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        f"http://{local_ip}:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["Content-Type"],
)


@app.get("/")
async def root():
    return {"message": "Fastest-finger quiz backend is running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run("main:app", host=config.HOST, port=config.PORT, reload=True)
