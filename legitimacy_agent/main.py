from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .analyzer import analyze
from .config import Settings
from .logging_utils import set_log_level
from .models import CheckRequest, LegitimacyReport

# Load environment variables from the project root .env (provider API keys for local dev)
_HERE = Path(__file__).resolve()
_PROJECT_ROOT = _HERE.parents[1]
load_dotenv(_PROJECT_ROOT / ".env", override=False)

settings = Settings.from_env()
set_log_level(settings.log_level)

app = FastAPI(title="Website Legitimacy Agent", version="0.1.0")


def _cors_allow_origins() -> list[str]:
    raw = os.getenv("LEGITIMACY_CORS_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:3000"]
    return [o.strip() for o in raw.split(",") if o.strip()]


# Defaults to http://localhost:3000; set LEGITIMACY_CORS_ORIGINS for deployed frontends.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_allow_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.post("/check", response_model=LegitimacyReport)
async def check_endpoint(req: CheckRequest):
    try:
        return await analyze(req, settings=settings)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
