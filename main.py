import logging

from fastapi import FastAPI
from config.settings import settings
from core.services.account_locks import AccountLocks
from infrastructure.db.sqlite import init_db
from infrastructure.sessions.memory import build_session_manager
from infrastructure.web.controllers.atm_controller import router as atm_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="ATM service")

@app.on_event("startup")
def on_startup():
    init_db(settings.DB_PATH)
    # сессии только в памяти, после рестарта нужен повторный логин
    app.state.session_manager = build_session_manager()
    app.state.account_locks = AccountLocks()

app.include_router(atm_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
