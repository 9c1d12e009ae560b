import logging
from fastapi import FastAPI
from ticketcore.api.exceptions import register_error_handler
from ticketcore.api.v1.routes import booking, payments, checkins, refunds, events
from ticketcore.core.middleware.http_ctx import HttpContextMiddleware
from ticketcore.core.redis import create_redis

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


async def lifespan(app: FastAPI):
    r = await create_redis()
    app.state.redis = r
    try:
        yield
    finally:
        await r.aclose()


app = FastAPI(title="ticketcore", lifespan=lifespan)
app.add_middleware(HttpContextMiddleware, request_id_header="X-Request-ID")
register_error_handler(app)
app.include_router(booking.router)
app.include_router(payments.router)
app.include_router(checkins.router)
app.include_router(refunds.router)
app.include_router(events.router)
