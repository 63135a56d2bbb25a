from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from database import Base, engine, SessionLocal
from api import keys, rounds, dividends, admin
from core.round_manager import RoundManager


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料庫表，並確保 Round 0 存在
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        RoundManager.init_game(db)
    finally:
        db.close()
    yield


app = FastAPI(
    title="Key Rounds API",
    description="Round-based key sale ledger with leader payouts and key-holder dividends",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(keys.router)
app.include_router(rounds.router)
app.include_router(dividends.router)
app.include_router(admin.router)


@app.get("/")
def root():
    return {"message": "Key Rounds API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
