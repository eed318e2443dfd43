"""FastAPI entrypoint exposing the moodboard curation APIs."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from moodboard_curator.config import CuratorConfig
from moodboard_curator.errors import ConfigurationError, RetrievalTimeoutError
from moodboard_curator.service import MoodboardService


class MoodboardRequest(BaseModel):
    prompt: str = Field(min_length=1)
    gender: str = "unisex"
    count: int = 18


class ParseRequest(BaseModel):
    q: str = Field(min_length=1)


class CurateRequest(BaseModel):
    event: str = Field(min_length=1)
    mood: str = Field(min_length=1)


load_dotenv(ROOT_DIR / ".env")
logging.basicConfig(
    level=os.getenv("MOODBOARD_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Moodboard Curator", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

service = MoodboardService(CuratorConfig.from_env())


def _curate(prompt: str, gender: str, count: int) -> dict:
    try:
        return service.curate_moodboard(prompt=prompt, gender=gender, count=count)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except RetrievalTimeoutError as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc


@app.get("/api/health")
def health() -> dict:
    return {
        "status": "ok",
        "app": "moodboard-curator",
        "stats": service.stats(),
    }


@app.post("/api/moodboard")
def moodboard(request: MoodboardRequest) -> dict:
    return _curate(request.prompt, request.gender, request.count)


@app.get("/api/moodboard")
def moodboard_query(q: str = "", gender: str = "unisex", count: int = 18) -> dict:
    return _curate(q, gender, count)


@app.post("/api/parse")
def parse(request: ParseRequest) -> dict:
    try:
        return service.parse_intent(request.q)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/api/curate")
def curate(request: CurateRequest) -> dict:
    try:
        return service.suggest_outfit(event=request.event, mood=request.mood)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
