from fastapi import Request
from sqlmodel import SQLModel, create_engine, Session


class Database:
    """Owns the engine; one per application, torn down on shutdown."""

    def __init__(self, url: str):
        connect_args = {}
        if url.startswith("sqlite"):
            # sync handlers run on the threadpool
            connect_args["check_same_thread"] = False
        self.url = url
        self.engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)

    def init(self):
        SQLModel.metadata.create_all(self.engine)

    def session(self) -> Session:
        # 👇 prevent attribute expiration so simple reads after commit are safe
        return Session(self.engine, expire_on_commit=False)

    def close(self):
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.db
