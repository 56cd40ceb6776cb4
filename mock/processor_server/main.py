from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from urllib.parse import parse_qs
import secrets

app = FastAPI(title="Mock Payment Processor", version="1.0.0")

# Test payment method tokens and how confirmation treats them
DECLINED = {"pm_card_chargeDeclined": "Your card was declined."}
NEEDS_ACTION = {"pm_card_authenticationRequired"}

INTENTS: dict[str, dict] = {}


async def _form(request: Request) -> dict[str, str]:
    fields = parse_qs((await request.body()).decode())
    return {key: values[-1] for key, values in fields.items()}


@app.get("/health")
def health(): return {"status": "ok"}


@app.post("/v1/payment_intents")
async def create_intent(request: Request):
    form = await _form(request)
    try:
        amount = int(form["amount"])
        currency = form["currency"]
    except (KeyError, ValueError):
        raise HTTPException(status_code=400, detail="amount and currency are required")
    if amount <= 0:
        raise HTTPException(status_code=400, detail="amount must be positive")

    intent_id = f"pi_{secrets.token_hex(12)}"
    INTENTS[intent_id] = {
        "id": intent_id,
        "object": "payment_intent",
        "amount": amount,
        "currency": currency,
        "status": "requires_payment_method",
        "client_secret": f"{intent_id}_secret_{secrets.token_hex(8)}",
        "last_payment_error": None,
    }
    return INTENTS[intent_id]


@app.post("/v1/payment_intents/{intent_id}/confirm")
async def confirm_intent(intent_id: str, request: Request):
    intent = INTENTS.get(intent_id)
    if intent is None:
        raise HTTPException(status_code=404, detail="no such payment_intent")
    if intent["status"] == "succeeded":
        return intent

    token = (await _form(request)).get("payment_method", "")
    if token in DECLINED:
        error = {"type": "card_error", "code": "card_declined", "message": DECLINED[token]}
        intent.update(status="requires_payment_method", last_payment_error=error)
        return JSONResponse(status_code=402, content={"error": error})
    if token in NEEDS_ACTION:
        intent["status"] = "requires_action"
        return intent

    intent.update(status="succeeded", last_payment_error=None)
    return intent


@app.get("/v1/payment_intents/{intent_id}")
def retrieve_intent(intent_id: str):
    intent = INTENTS.get(intent_id)
    if intent is None:
        raise HTTPException(status_code=404, detail="no such payment_intent")
    return intent
