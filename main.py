from datetime import datetime, timezone
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

GREETING = os.getenv("CDH_GREETING", "It's working. Hello")
PORT = int(os.getenv("PORT", "8000"))

app = FastAPI(title="Liveness Responder")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.get("/", response_class=PlainTextResponse)
def root():
    return GREETING


@app.get("/health")
def health():
    # Polled by the rollout health gate; anything but 200 counts as not ready.
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)
