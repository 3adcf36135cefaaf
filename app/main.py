from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.common.error_handlers import register_error_handlers
from app.api.v1 import balance, production, transaction

app = FastAPI(title="Ledger Core", version="1.0.0")

origins = [
    "http://localhost:5173",
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register API routers
app.include_router(
    transaction.router, prefix="/api/v1/transactions", tags=["transactions"])
app.include_router(
    production.router, prefix="/api/v1/productions", tags=["productions"])
app.include_router(
    balance.router, prefix="/api/v1/balances", tags=["balances"])


@app.get("/")
def read_root():
    return {"message": "Welcome to the Ledger Core APIs!"}
