from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from cloudcapsule import models  # noqa: F401  (registers tables on SQLModel.metadata)


def make_engine(db_url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if db_url.startswith("sqlite"):
        # TestClient and uvicorn's threadpool share the connection across threads
        connect_args["check_same_thread"] = False
    return create_engine(db_url, echo=echo, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session
