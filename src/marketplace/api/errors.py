"""Map marketplace exceptions to HTTP responses.

Protean's handlers cover ``ValidationError`` (400) and
``ObjectNotFoundError`` (404). The handlers registered here are more
specific and win for their subclasses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from marketplace.exceptions import (
    GatewayError,
    InvalidStateError,
    InvalidTransitionError,
    RateLimitExceeded,
    StockError,
)


async def _conflict(request: Request, exc: InvalidStateError | InvalidTransitionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": exc.messages})


async def _stock_error(request: Request, exc: StockError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": str(exc),
            "shortfalls": [shortfall.to_dict() for shortfall in exc.shortfalls],
        },
    )


async def _rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": str(exc)},
        headers={"Retry-After": str(exc.retry_after)},
    )


async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={
            "error": str(exc),
            "checkout_id": exc.checkout_id,
            "order_ids": exc.order_ids,
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(InvalidTransitionError, _conflict)
    app.add_exception_handler(InvalidStateError, _conflict)
    app.add_exception_handler(StockError, _stock_error)
    app.add_exception_handler(RateLimitExceeded, _rate_limited)
    app.add_exception_handler(GatewayError, _gateway_error)
