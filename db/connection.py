from fastapi import Depends, Request
from sqlalchemy.orm import Session
from .database import SessionLocal
from typing import Annotated
from services.search_service import SearchService


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_search_service(request: Request) -> SearchService:
    # Built once at startup; backend selection lives for the whole process
    return request.app.state.search_service


db_dependency = Annotated[Session, Depends(get_db)]
search_dependency = Annotated[SearchService, Depends(get_search_service)]
