from fastapi import FastAPI
from pydantic import BaseModel
import uuid

app = FastAPI(title="Mock Payment Gateway", version="1.0.0")

# Stored methods that always decline, for exercising sweep failure paths
DECLINED_METHODS = {"card_declined", "card_expired"}
SINGLE_CHARGE_LIMIT_CENTS = 1_000_000


class ChargeRequest(BaseModel):
    method: str
    amount_cents: int
    reference: str


@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/charges")
def charge(body: ChargeRequest):
    if body.method in DECLINED_METHODS:
        return {"success": False, "failure_reason": f"{body.method.replace('_', ' ')}"}
    if body.amount_cents > SINGLE_CHARGE_LIMIT_CENTS:
        return {"success": False, "failure_reason": "amount exceeds single charge limit"}
    return {
        "success": True,
        "transaction_id": f"TXN-{uuid.uuid4().hex[:12].upper()}",
        "amount_cents": body.amount_cents,
    }
